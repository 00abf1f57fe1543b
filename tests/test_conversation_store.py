"""Tests for the conversation store and the hold sweeper."""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime, timedelta

from sms_receptionist.models import Role, Slot
from sms_receptionist.services.conversation_store import ConversationStore, HoldSweeper

PHONE = "+15551234567"
OTHER_PHONE = "+15557654321"


def _slot(hour: int) -> Slot:
    start = datetime(2026, 3, 2, hour, tzinfo=UTC)
    return Slot(start=start, end=start + timedelta(hours=1), label=f"{hour}:00")


# ── History ──────────────────────────────────────────────────────────


class TestHistory:
    def test_new_customer_has_empty_history(self):
        store = ConversationStore()
        assert store.get_history(PHONE) == []

    def test_turns_kept_in_order(self):
        store = ConversationStore()
        store.append_turn(PHONE, Role.USER, "Hi")
        store.append_turn(PHONE, "assistant", "Hello!")
        history = store.get_history(PHONE)
        assert [(t.role, t.content) for t in history] == [
            (Role.USER, "Hi"),
            (Role.ASSISTANT, "Hello!"),
        ]

    def test_history_capped_at_twenty_oldest_dropped(self):
        store = ConversationStore()
        for i in range(21):
            store.append_turn(PHONE, Role.USER, f"message {i}")
        history = store.get_history(PHONE)
        assert len(history) == 20
        assert history[0].content == "message 1"
        assert history[-1].content == "message 20"

    def test_custom_history_limit(self):
        store = ConversationStore(history_limit=3)
        for i in range(5):
            store.append_turn(PHONE, Role.USER, str(i))
        assert [t.content for t in store.get_history(PHONE)] == ["2", "3", "4"]

    def test_returned_history_is_a_copy(self):
        store = ConversationStore()
        store.append_turn(PHONE, Role.USER, "Hi")
        store.get_history(PHONE).clear()
        assert len(store.get_history(PHONE)) == 1

    def test_customers_are_isolated(self):
        store = ConversationStore()
        store.append_turn(PHONE, Role.USER, "Hi")
        assert store.get_history(OTHER_PHONE) == []

    def test_clear_history(self):
        store = ConversationStore()
        store.append_turn(PHONE, Role.USER, "Hi")
        store.clear_history(PHONE)
        assert store.get_history(PHONE) == []

    def test_injected_backing_map_is_used(self):
        histories: dict = {}
        store = ConversationStore(histories=histories)
        store.append_turn(PHONE, Role.USER, "Hi")
        assert histories[PHONE][0].content == "Hi"

    def test_concurrent_appends_are_not_lost(self):
        store = ConversationStore(history_limit=1000)

        def _writer(n):
            for i in range(50):
                store.append_turn(PHONE, Role.USER, f"{n}-{i}")

        threads = [threading.Thread(target=_writer, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        history = store.get_history(PHONE)
        assert len(history) == 500
        for n in range(10):
            mine = [t.content for t in history if t.content.startswith(f"{n}-")]
            assert mine == [f"{n}-{i}" for i in range(50)]
        assert store._locks == {}

    def test_lock_registry_does_not_grow_with_customers(self):
        store = ConversationStore()
        for n in range(100):
            phone = f"+1555000{n:04d}"
            store.append_turn(phone, Role.USER, "Hi")
            store.get_history(phone)
            store.set_pending_hold(phone, [_slot(9)])
            store.get_pending_hold(phone)
        store.sweep()

        assert store._locks == {}

    def test_waiter_shares_lock_until_released(self):
        store = ConversationStore()
        entered = threading.Event()
        release = threading.Event()

        def _hold_lock():
            with store._locked(PHONE):
                entered.set()
                release.wait(2)

        holder = threading.Thread(target=_hold_lock)
        holder.start()
        entered.wait(2)
        waiter = threading.Thread(target=store.append_turn, args=(PHONE, Role.USER, "Hi"))
        waiter.start()
        for _ in range(100):
            if store._locks[PHONE][1] == 2:
                break
            time.sleep(0.01)
        assert store._locks[PHONE][1] == 2

        release.set()
        holder.join()
        waiter.join()
        assert store._locks == {}
        assert [t.content for t in store.get_history(PHONE)] == ["Hi"]


# ── Holds ────────────────────────────────────────────────────────────


class TestPendingHolds:
    def test_no_hold_returns_none(self):
        assert ConversationStore().get_pending_hold(PHONE) is None

    def test_hold_round_trip(self, clock):
        store = ConversationStore(clock=clock)
        slots = [_slot(9), _slot(10), _slot(11)]
        hold = store.set_pending_hold(PHONE, slots)
        assert hold.expires_at == clock.now + timedelta(minutes=10)
        assert store.get_pending_hold(PHONE) == tuple(slots)

    def test_new_hold_replaces_old(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        store.set_pending_hold(PHONE, [_slot(14)])
        assert store.get_pending_hold(PHONE) == (_slot(14),)

    def test_hold_valid_at_exact_expiry(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        clock.advance(minutes=10)
        assert store.get_pending_hold(PHONE) == (_slot(9),)

    def test_expired_hold_is_deleted_on_read(self, clock):
        holds: dict = {}
        store = ConversationStore(clock=clock, holds=holds)
        store.set_pending_hold(PHONE, [_slot(9)])
        clock.advance(minutes=11)

        assert store.get_pending_hold(PHONE) is None
        assert PHONE not in holds
        assert store.get_pending_hold(PHONE) is None

    def test_clear_hold(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        store.clear_pending_hold(PHONE)
        assert store.get_pending_hold(PHONE) is None

    def test_clear_absent_hold_is_noop(self):
        store = ConversationStore()
        store.clear_pending_hold(PHONE)
        store.clear_pending_hold(PHONE)
        assert store.get_pending_hold(PHONE) is None


class TestSweep:
    def test_sweep_removes_only_expired(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        clock.advance(minutes=5)
        store.set_pending_hold(OTHER_PHONE, [_slot(10)])
        clock.advance(minutes=6)

        assert store.sweep() == 1
        assert store.get_pending_hold(PHONE) is None
        assert store.get_pending_hold(OTHER_PHONE) == (_slot(10),)

    def test_sweep_with_nothing_expired(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        assert store.sweep() == 0

    def test_sweep_empty_store(self):
        assert ConversationStore().sweep() == 0


class TestHoldSweeper:
    def test_sweeps_periodically(self, clock):
        store = ConversationStore(clock=clock)
        store.set_pending_hold(PHONE, [_slot(9)])
        clock.advance(minutes=30)

        sweeper = HoldSweeper(store, interval_seconds=0.01)
        sweeper.start()
        try:
            deadline = time.monotonic() + 2
            while PHONE in store._holds and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sweeper.stop()

        assert PHONE not in store._holds

    def test_stop_without_start(self):
        HoldSweeper(ConversationStore(), interval_seconds=60).stop()

    def test_sweep_errors_do_not_kill_thread(self):
        calls = []
        swept = threading.Event()

        class FlakyStore:
            def sweep(self):
                calls.append(1)
                if len(calls) == 1:
                    raise RuntimeError("backend down")
                swept.set()
                return 0

        sweeper = HoldSweeper(FlakyStore(), interval_seconds=0.01)
        sweeper.start()
        try:
            assert swept.wait(timeout=2)
        finally:
            sweeper.stop()
