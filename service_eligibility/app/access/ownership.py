"""
Single-administrator ownership guard.
"""

from typing import Optional

from shared.errors import AuthorizationError, InvalidOwnerError
from shared.logging import get_logger
from ..audit.events import EventLog, OwnershipTransferred


class OwnershipGuard:
    """Holds the current owner and authorizes privileged calls.

    The owner is set once by the deploying principal and can only be
    replaced by the current owner. The guard is an explicit object passed to
    every component with privileged operations; each of those operations
    starts with ``require_owner``.
    """

    def __init__(self, events: EventLog):
        self.logger = get_logger("eligibility.ownership")
        self.events = events
        self._owner: Optional[str] = None
        self._saved_owner: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def initialize(self, deployer: str) -> None:
        """Make the deploying principal the first owner."""
        if self._owner is not None:
            raise AuthorizationError("Ownership is already initialized")
        if not deployer:
            raise InvalidOwnerError()
        self._owner = deployer
        self.events.emit(OwnershipTransferred, previous_owner=None, new_owner=deployer)

    def require_owner(self, caller: str, operation: Optional[str] = None) -> None:
        if self._owner is None or caller != self._owner:
            self.logger.warning("Non-owner call rejected", caller=caller, operation=operation)
            raise AuthorizationError(
                "Caller is not the owner",
                details={"caller": caller, "operation": operation}
            )

    def transfer_ownership(self, caller: str, new_owner: Optional[str]) -> None:
        self.require_owner(caller, "transfer_ownership")
        if not new_owner:
            raise InvalidOwnerError()

        previous_owner = self._owner
        self._owner = new_owner
        self.events.emit(OwnershipTransferred, previous_owner=previous_owner, new_owner=new_owner)
        self.logger.info("Ownership transferred", previous_owner=previous_owner, new_owner=new_owner)

    def begin(self) -> None:
        self._saved_owner = self._owner

    def commit(self) -> None:
        self._saved_owner = None

    def rollback(self) -> None:
        self._owner = self._saved_owner
        self._saved_owner = None
