"""Database infrastructure — engine, ORM models, and the transaction store."""

from deal_confirmation.infrastructure.database.engine import (
    close_db,
    create_session_factory,
    get_session_factory,
    init_db,
)
from deal_confirmation.infrastructure.database.orm_models import (
    Base,
    ConfirmationTransaction,
    TransactionEvent,
)
from deal_confirmation.infrastructure.database.repositories import TransactionStore

__all__ = [
    "Base",
    "ConfirmationTransaction",
    "TransactionEvent",
    "TransactionStore",
    "create_session_factory",
    "get_session_factory",
    "init_db",
    "close_db",
]
