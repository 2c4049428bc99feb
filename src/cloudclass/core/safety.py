"""Safety and confirmation system for cloudclass.

This module provides the confirmation prompt shown before destructive
operations and an audit log of every confirmation decision.
"""

from datetime import datetime, timezone
from typing import Dict, Any, List
from dataclasses import dataclass


@dataclass
class ConfirmationRequest:
    """Request for user confirmation."""

    operation: str
    question: str
    resource_count: int = 0
    dry_run: bool = False


class SafetyManager:
    """Safety and confirmation manager for mutating operations.

    Confirmations can be disabled (the ``--yes`` flag), in which case
    every request is auto-confirmed and logged as such.
    """

    def __init__(self, enable_confirmations: bool = True) -> None:
        """Initialize safety manager.

        Args:
            enable_confirmations: Whether to enable confirmation prompts
        """
        self.enable_confirmations = enable_confirmations
        self.audit_log: List[Dict[str, Any]] = []

    def request_confirmation(
        self, request: ConfirmationRequest, force: bool = False
    ) -> bool:
        """Request user confirmation for an operation.

        Args:
            request: ConfirmationRequest with operation details
            force: Skip the prompt for this request only

        Returns:
            True if user confirms, False otherwise
        """
        if force or not self.enable_confirmations:
            self._log_confirmation(request, True, "Auto-confirmed")
            return True

        confirmed = self._get_standard_confirmation(request.question)

        self._log_confirmation(
            request,
            confirmed,
            "User confirmed" if confirmed else "User declined",
        )

        return confirmed

    def _get_standard_confirmation(self, question: str) -> bool:
        """Get standard confirmation (y/n).

        Returns:
            True if user confirms, False otherwise
        """
        print(f"\n{question} (y/n): ", end="")
        try:
            response = input().strip().lower()
        except EOFError:
            return False
        return response in ["y", "yes"]

    def _log_confirmation(
        self, request: ConfirmationRequest, confirmed: bool, reason: str
    ) -> None:
        """Log confirmation request and result.

        Args:
            request: The confirmation request
            confirmed: Whether the operation was confirmed
            reason: Reason for the confirmation result
        """
        self.audit_log.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "operation": request.operation,
            "resource_count": request.resource_count,
            "dry_run": request.dry_run,
            "confirmed": confirmed,
            "reason": reason,
        })

    def get_audit_log(self) -> List[Dict[str, Any]]:
        """Get complete audit log of confirmations.

        Returns:
            List of audit log entries
        """
        return self.audit_log.copy()
