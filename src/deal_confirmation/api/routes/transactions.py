"""Transaction confirmation REST API routes.

The calling user is taken from the X-User-ID header set by the marketplace
gateway. The auto-resolve sweeper calls the same service layer, so a
party's confirm and a forced confirm share one transition path.

Routes:
    POST   /api/v1/transactions               — Open a transaction on a conversation
    GET    /api/v1/transactions               — List the caller's transactions
    GET    /api/v1/transactions/{id}          — Get transaction details
    GET    /api/v1/transactions/{id}/events   — Get audit trail
    PUT    /api/v1/transactions/{id}/confirm  — Confirm the caller's side
    PUT    /api/v1/transactions/{id}/deny     — Counterparty objects (advisory)
    POST   /api/v1/transactions/{id}/dispute  — Escalate to a dispute
    PUT    /api/v1/transactions/{id}/cancel   — Initiator withdraws
"""

from __future__ import annotations

import math
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query

from deal_confirmation.api.deps import get_actor_id, get_confirmation_service
from deal_confirmation.domain.enums import TransactionStatus
from deal_confirmation.logging_config import get_logger
from deal_confirmation.schemas.transactions import (
    DenyResponse,
    DisputeRequest,
    OpenTransactionRequest,
    Pagination,
    TransactionEventResponse,
    TransactionListResponse,
    TransactionResponse,
)
from deal_confirmation.services.confirmation_service import ConfirmationService

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])
logger = get_logger(__name__)

StatusFilter = Literal["pending", "confirmed", "disputed", "cancelled", "all"]


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=201,
    summary="Open a confirmation transaction",
)
async def open_transaction(
    request: OpenTransactionRequest,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionResponse:
    """Open a pending transaction; the caller's side is confirmed immediately."""
    record = await svc.open_transaction(
        conversation_id=request.conversation_id,
        actor=actor,
        subject_id=request.subject_id,
    )
    return TransactionResponse.model_validate(record)


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=TransactionListResponse,
    summary="List the caller's transactions",
)
async def list_transactions(
    status: StatusFilter | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionListResponse:
    """Transactions where the caller is either party, newest first."""
    status_filter = None if status in (None, "all") else TransactionStatus(status)
    records, total = await svc.list_for_user(actor, status_filter, page=page, limit=limit)
    return TransactionListResponse(
        data=[TransactionResponse.model_validate(r) for r in records],
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction details",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionResponse:
    record = await svc.get_transaction(transaction_id, actor)
    return TransactionResponse.model_validate(record)


@router.get(
    "/{transaction_id}/events",
    response_model=list[TransactionEventResponse],
    summary="Get audit trail",
)
async def get_events(
    transaction_id: uuid.UUID,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> list[TransactionEventResponse]:
    """Return the full audit trail for a transaction, oldest first."""
    events = await svc.get_events(transaction_id, actor)
    return [TransactionEventResponse.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Party actions
# ---------------------------------------------------------------------------


@router.put(
    "/{transaction_id}/confirm",
    response_model=TransactionResponse,
    summary="Confirm the caller's side",
)
async def confirm_transaction(
    transaction_id: uuid.UUID,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionResponse:
    """Transitions PENDING -> CONFIRMED once both sides have confirmed."""
    record = await svc.confirm(transaction_id, actor)
    return TransactionResponse.model_validate(record)


@router.put(
    "/{transaction_id}/deny",
    response_model=DenyResponse,
    summary="Deny a transaction",
)
async def deny_transaction(
    transaction_id: uuid.UUID,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> DenyResponse:
    """Counterparty objection. The status stays PENDING until auto-resolve."""
    record = await svc.deny(transaction_id, actor)
    return DenyResponse(transaction=TransactionResponse.model_validate(record))


@router.post(
    "/{transaction_id}/dispute",
    response_model=TransactionResponse,
    status_code=201,
    summary="Dispute a transaction",
)
async def dispute_transaction(
    transaction_id: uuid.UUID,
    request: DisputeRequest,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionResponse:
    """Transitions PENDING -> DISPUTED and opens a support ticket."""
    record = await svc.dispute(
        transaction_id,
        actor,
        reason=request.reason,
        description=request.description,
    )
    return TransactionResponse.model_validate(record)


@router.put(
    "/{transaction_id}/cancel",
    response_model=TransactionResponse,
    summary="Cancel a transaction",
)
async def cancel_transaction(
    transaction_id: uuid.UUID,
    actor: str = Depends(get_actor_id),
    svc: ConfirmationService = Depends(get_confirmation_service),
) -> TransactionResponse:
    """Initiator only. Transitions PENDING -> CANCELLED."""
    record = await svc.cancel(transaction_id, actor)
    return TransactionResponse.model_validate(record)
