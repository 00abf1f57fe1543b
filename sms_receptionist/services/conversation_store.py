"""In-memory conversation history and pending-slot holds, keyed by phone.

Design decisions
────────────────
• **Injected clock and backing maps** so expiry and eviction are testable
  without waiting on the wall clock, and so a durable key-value store can
  replace the plain dicts without touching the dispatcher.
• **One lock per customer**: operations on the same phone number are
  serialized (two webhook deliveries cannot interleave history writes),
  operations on different numbers never wait on each other.  A key's lock
  lives only while some operation holds or waits on it, so the registry
  stays proportional to concurrent callers, not to every number ever seen.
• Purely ephemeral — state is lost on process restart.

Known race: per-key locking serializes individual operations, not whole
dispatcher passes.  Two near-simultaneous "Book 1" messages from the same
customer can both read the same hold before either clears it.  SMS is
human-paced, so this is accepted rather than guarded against.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, MutableMapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from sms_receptionist.models import ConversationTurn, PendingSlotHold, Role, Slot

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
DEFAULT_HOLD_TTL = timedelta(minutes=10)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class ConversationStore:
    """Owns every customer's history and pending hold."""

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        histories: MutableMapping[str, list[ConversationTurn]] | None = None,
        holds: MutableMapping[str, PendingSlotHold] | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        hold_ttl: timedelta = DEFAULT_HOLD_TTL,
    ) -> None:
        self._clock = clock
        self._histories = histories if histories is not None else {}
        self._holds = holds if holds is not None else {}
        self._history_limit = history_limit
        self._hold_ttl = hold_ttl
        # customer_id -> [lock, number of holders and waiters]
        self._locks: dict[str, list] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _locked(self, customer_id: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._locks.setdefault(customer_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[customer_id]

    # ── History ──────────────────────────────────────────────────────

    def get_history(self, customer_id: str) -> list[ConversationTurn]:
        """Return a copy of the customer's history, creating it if new."""
        with self._locked(customer_id):
            history = self._histories.setdefault(customer_id, [])
            return list(history)

    def append_turn(self, customer_id: str, role: Role | str, content: str) -> None:
        turn = ConversationTurn(role=Role(role), content=content)
        with self._locked(customer_id):
            history = self._histories.setdefault(customer_id, [])
            history.append(turn)
            overflow = len(history) - self._history_limit
            if overflow > 0:
                del history[:overflow]
            # Write back so non-dict backends observe the mutation
            self._histories[customer_id] = history

    def clear_history(self, customer_id: str) -> None:
        with self._locked(customer_id):
            self._histories.pop(customer_id, None)

    # ── Pending holds ────────────────────────────────────────────────

    def set_pending_hold(self, customer_id: str, slots: Sequence[Slot]) -> PendingSlotHold:
        """Hold *slots* for the customer, replacing any earlier hold."""
        now = self._clock()
        hold = PendingSlotHold(
            slots=tuple(slots),
            created_at=now,
            expires_at=now + self._hold_ttl,
        )
        with self._locked(customer_id):
            self._holds[customer_id] = hold
        logger.debug("Hold set for %s: %d slot(s)", customer_id, len(hold.slots))
        return hold

    def get_pending_hold(self, customer_id: str) -> tuple[Slot, ...] | None:
        """Return the held slots, or ``None`` if absent or expired.

        An expired hold is deleted by the same call.
        """
        with self._locked(customer_id):
            hold = self._holds.get(customer_id)
            if hold is None:
                return None
            if hold.is_expired(self._clock()):
                del self._holds[customer_id]
                return None
            return hold.slots

    def clear_pending_hold(self, customer_id: str) -> None:
        with self._locked(customer_id):
            self._holds.pop(customer_id, None)

    def sweep(self) -> int:
        """Delete every hold that has expired.  Returns the number removed."""
        now = self._clock()
        removed = 0
        for customer_id in list(self._holds):
            with self._locked(customer_id):
                hold = self._holds.get(customer_id)
                if hold is not None and hold.expires_at < now:
                    del self._holds[customer_id]
                    removed += 1
        if removed:
            logger.debug("Sweep removed %d expired hold(s)", removed)
        return removed


class HoldSweeper:
    """Daemon thread that calls ``store.sweep()`` on a fixed interval."""

    def __init__(self, store: ConversationStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return

        def _loop():
            while not self._stop.wait(self._interval):
                try:
                    self._store.sweep()
                except Exception:
                    logger.exception("Hold sweep failed")

        self._thread = threading.Thread(target=_loop, daemon=True, name="hold-sweeper")
        self._thread.start()
        logger.info("Hold sweeper started (interval=%ss)", self._interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval)
            self._thread = None
