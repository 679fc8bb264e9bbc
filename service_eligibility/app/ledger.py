"""
Serialized commit-or-abort call execution.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol, Sequence

from shared.errors import AuthenticationError
from shared.logging import caller_context, get_logger
from shared.metrics import MetricsCollector
from shared.tracing import trace_operation


class LedgerParticipant(Protocol):
    """State holder that stages changes for the duration of one call."""

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(frozen=True)
class CallContext:
    """Identity of one ledger call."""
    call_id: int
    operation: str
    caller: str


class Ledger:
    """Runs calls one at a time; each call commits everywhere or nowhere.

    On entry every participant stages; if the call body raises, every
    participant that began is rolled back in reverse order and the error is
    re-raised unchanged. Reads outside a call go through ``read()`` so they
    never observe a half-applied call.
    """

    def __init__(self, participants: Sequence[LedgerParticipant], metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("eligibility.ledger")
        self.metrics = metrics
        self._participants: List[LedgerParticipant] = list(participants)
        self._lock = threading.Lock()
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    @contextmanager
    def call(self, operation: str, caller: str) -> Iterator[CallContext]:
        if not caller:
            raise AuthenticationError("Caller identity is required", details={"operation": operation})

        with self._lock:
            self._call_count += 1
            context = CallContext(call_id=self._call_count, operation=operation, caller=caller)
            start_time = time.time()
            status = "aborted"
            begun: List[LedgerParticipant] = []

            try:
                with caller_context(caller), \
                        trace_operation(f"ledger.{operation}", caller=caller, call_id=context.call_id):
                    try:
                        for participant in self._participants:
                            participant.begin()
                            begun.append(participant)
                        yield context
                    except BaseException as exc:
                        for participant in reversed(begun):
                            participant.rollback()
                        self.logger.info(
                            "Ledger call aborted",
                            operation=operation,
                            call_id=context.call_id,
                            error_type=type(exc).__name__,
                            error=str(exc)
                        )
                        raise

                    for participant in begun:
                        participant.commit()
                    status = "committed"
                    self.logger.debug("Ledger call committed", operation=operation, call_id=context.call_id)
            finally:
                if self.metrics:
                    self.metrics.record_ledger_call(operation, status, time.time() - start_time)

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the ledger for a consistent read of committed state."""
        with self._lock:
            yield
