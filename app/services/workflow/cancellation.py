"""In-process cancellation signals for running qualification workflows."""

import asyncio
from typing import Dict
from uuid import UUID

from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between workflow steps."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = None

    def cancel(self, reason: str = "Canceled by user") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class CancellationRegistry:
    """Tracks the token of each supplier's in-flight full run.

    Also serves as the per-supplier guard: registering a supplier that is
    already present fails.
    """

    def __init__(self):
        self._tokens: Dict[UUID, CancellationToken] = {}

    def register(self, supplier_id: UUID, token: CancellationToken) -> bool:
        """Register a token; returns False if the supplier already has one."""
        if supplier_id in self._tokens:
            return False
        self._tokens[supplier_id] = token
        return True

    def release(self, supplier_id: UUID, token: CancellationToken) -> None:
        if self._tokens.get(supplier_id) is token:
            del self._tokens[supplier_id]

    def is_running(self, supplier_id: UUID) -> bool:
        return supplier_id in self._tokens

    def cancel(self, supplier_id: UUID, reason: str = "Canceled by user") -> bool:
        """Signal the supplier's running workflow, if any."""
        token = self._tokens.get(supplier_id)
        if token is None:
            return False
        token.cancel(reason)
        LOGGER.info("Cancellation signalled", extra={"supplier_id": str(supplier_id)})
        return True


# Shared by the API layer and the orchestrator within one process
cancellation_registry = CancellationRegistry()
