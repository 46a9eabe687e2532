"""FastAPI dependency injection providers.

The lifespan in main.py wires the confirmation service once and stores it on
``app.state``; routes receive it through these providers. Tests place their
own service on ``app.state`` directly.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from deal_confirmation.services.confirmation_service import ConfirmationService


def get_confirmation_service(request: Request) -> ConfirmationService:
    """Provide the process-wide ConfirmationService."""
    service = getattr(request.app.state, "confirmation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity of the calling user, set by the authenticating gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    return x_user_id
