"""Pydantic API schemas."""

from deal_confirmation.schemas.transactions import (
    DenyResponse,
    DisputeRequest,
    HealthResponse,
    OpenTransactionRequest,
    Pagination,
    TransactionEventResponse,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    "DenyResponse",
    "DisputeRequest",
    "HealthResponse",
    "OpenTransactionRequest",
    "Pagination",
    "TransactionEventResponse",
    "TransactionListResponse",
    "TransactionResponse",
]
