"""Application services — use case orchestration."""

from deal_confirmation.services.auto_resolve_sweeper import AutoResolveSweeper, SweepReport
from deal_confirmation.services.confirmation_service import ConfirmationService
from deal_confirmation.services.side_effects import SideEffectDispatcher

__all__ = ["AutoResolveSweeper", "ConfirmationService", "SideEffectDispatcher", "SweepReport"]
