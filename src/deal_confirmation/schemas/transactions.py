"""Pydantic schemas for the Transactions API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models and domain snapshots to keep clean boundaries
between the API and the persistence layer.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from deal_confirmation.domain.enums import TransactionStatus

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class OpenTransactionRequest(BaseModel):
    """Request body for opening a confirmation transaction."""

    conversation_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Conversation between the two parties",
        examples=["1842"],
    )
    subject_id: str | None = Field(
        default=None,
        max_length=64,
        description="Listing/item the deal is about (optional)",
        examples=["product-77"],
    )


class DisputeRequest(BaseModel):
    """Request body for disputing a transaction.

    Blank values are rejected by the service with MISSING_FIELDS.
    """

    reason: str = Field(
        default="",
        max_length=200,
        description="Short reason, used as the support ticket subject",
        examples=["quality"],
    )
    description: str = Field(
        default="",
        max_length=5000,
        description="What went wrong",
        examples=["item damaged"],
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class TransactionResponse(BaseModel):
    """Response schema for a confirmation transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: str
    subject_id: str | None
    initiated_by: str
    counterparty_id: str
    initiator_confirmed: bool
    counterparty_confirmed: bool
    initiator_confirmed_at: datetime | None
    counterparty_confirmed_at: datetime | None
    status: TransactionStatus
    auto_resolve_at: datetime
    created_at: datetime


class DenyResponse(BaseModel):
    """Response for a denial: the deal stays pending until auto_resolve_at."""

    message: str = (
        "Transaction denial recorded. Rating will be available after waiting period."
    )
    transaction: TransactionResponse


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class TransactionListResponse(BaseModel):
    """A page of the caller's transactions."""

    data: list[TransactionResponse]
    pagination: Pagination


class TransactionEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    transaction_id: uuid.UUID
    event_type: str
    old_status: str | None
    new_status: str
    actor: str
    metadata: dict
    created_at: datetime | None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
    sweeper: str = "unknown"
