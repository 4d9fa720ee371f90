"""
Tests for the review session controller and session registry.

Tests:
1. Happy path through the state machine
2. Snapshot isolation (no re-query mid-session)
3. Grade validation and wrong-state calls
4. Persist failure, retry and cancel
5. Corrupt records
6. Subscriptions
7. One active session per user
"""

import pytest
from datetime import timedelta
from unittest.mock import Mock

from studypals.exceptions import (
    ActiveSessionError,
    InvalidGradeError,
    InvalidRecordError,
    PersistError,
    SessionStateError,
)
from studypals.schemas import Grade
from studypals.session import (
    ReviewSession,
    SessionRegistry,
    SessionState,
    count_due_cards,
    registry,
    start_review_session,
)
from studypals.sm2 import SM2Algorithm

from tests.conftest import NOW, MemoryStore, make_record


@pytest.fixture
def store(yesterday):
    return MemoryStore([
        make_record("b", NOW, interval_days=1, repetitions=1),
        make_record("a", yesterday, interval_days=6, repetitions=2),
        make_record("later", NOW + timedelta(days=4), interval_days=6, repetitions=2),
    ])


@pytest.fixture
def scheduler():
    return Mock(wraps=SM2Algorithm.schedule)


def make_session(store, clock, scheduler=SM2Algorithm.schedule, card_ids=()):
    return ReviewSession(store, user_id=1, card_ids=card_ids, clock=clock, scheduler=scheduler)


class TestHappyPath:

    def test_starts_idle(self, store, clock):
        session = make_session(store, clock)

        assert session.state == SessionState.IDLE
        assert session.current_card_id is None

    def test_walks_due_cards_in_order(self, store, clock, scheduler):
        session = make_session(store, clock, scheduler)

        session.start()
        assert session.state == SessionState.PRESENTING
        assert session.queue == ("a", "b")

        assert session.reveal() == "a"
        assert session.state == SessionState.AWAITING_GRADE
        result = session.grade(Grade.GOOD)
        assert result.card_id == "a"
        assert result.record.interval_days == 15
        assert result.next_card_id == "b"
        assert session.state == SessionState.PRESENTING

        session.reveal()
        result = session.grade("easy")
        assert result.next_card_id is None
        assert session.state == SessionState.COMPLETED
        assert session.is_finished

        assert scheduler.call_count == 2
        assert [r.card_id for r, _ in store.saved] == ["a", "b"]
        assert store.records["b"].repetitions == 2

    def test_saves_outcome_with_record(self, store, clock):
        session = make_session(store, clock)
        session.start()
        session.reveal()

        session.grade(Grade.AGAIN, reviewed_at=NOW + timedelta(minutes=5))

        record, outcome = store.saved[0]
        assert outcome.card_id == "a"
        assert outcome.grade == Grade.AGAIN
        assert outcome.reviewed_at == NOW + timedelta(minutes=5)
        assert record.last_reviewed_at == NOW + timedelta(minutes=5)

    def test_nothing_due_completes_immediately(self, clock):
        store = MemoryStore([make_record("x", NOW + timedelta(days=1))])
        session = make_session(store, clock)

        snap = session.start()

        assert snap.state == SessionState.COMPLETED
        assert snap.total == 0

    def test_new_cards_get_records_lazily(self, clock):
        store = MemoryStore()
        session = make_session(store, clock, card_ids=["n2", "n1"])

        session.start()
        assert session.queue == ("n1", "n2")
        assert store.records == {}

        session.reveal()
        result = session.grade(Grade.GOOD)

        assert result.record.repetitions == 1
        assert result.record.interval_days == 1
        assert result.record.due_at == NOW + timedelta(days=1)
        assert "n1" in store.records
        assert "n2" not in store.records

    def test_existing_records_win_over_card_ids(self, store, clock):
        session = make_session(store, clock, card_ids=["a", "later"])

        session.start()

        assert session.queue == ("a", "b")


class TestSnapshotIsolation:

    def test_newly_due_cards_wait_for_next_session(self, store, clock):
        session = make_session(store, clock)
        session.start()

        store.records["late"] = make_record("late", NOW - timedelta(days=30))
        for _ in range(2):
            session.reveal()
            session.grade(Grade.GOOD)

        assert session.state == SessionState.COMPLETED
        assert "late" not in [r.card_id for r, _ in store.saved]

    def test_start_only_once(self, store, clock):
        session = make_session(store, clock)
        session.start()

        with pytest.raises(SessionStateError):
            session.start()


class TestGradeValidation:

    def test_bad_grade_changes_nothing(self, store, clock, scheduler):
        session = make_session(store, clock, scheduler)
        session.start()
        session.reveal()

        with pytest.raises(InvalidGradeError):
            session.grade("excellent")

        assert session.state == SessionState.AWAITING_GRADE
        assert session.current_card_id == "a"
        scheduler.assert_not_called()
        assert store.saved == []

    def test_grade_before_reveal(self, store, clock):
        session = make_session(store, clock)
        session.start()

        with pytest.raises(SessionStateError):
            session.grade(Grade.GOOD)

    def test_reveal_before_start(self, store, clock):
        with pytest.raises(SessionStateError):
            make_session(store, clock).reveal()


class TestPersistFailure:

    def test_failed_save_waits_for_retry(self, store, clock, scheduler):
        session = make_session(store, clock, scheduler)
        session.start()
        session.reveal()
        store.fail_saves = 1

        with pytest.raises(PersistError):
            session.grade(Grade.GOOD)

        assert session.state == SessionState.PERSIST_FAILED
        assert session.current_card_id == "a"
        assert session.snapshot().error
        assert store.saved == []

        result = session.retry()

        assert result.card_id == "a"
        assert session.state == SessionState.PRESENTING
        assert session.current_card_id == "b"
        assert scheduler.call_count == 1
        assert store.records["a"] == result.record

    def test_retry_can_fail_again(self, store, clock, scheduler):
        session = make_session(store, clock, scheduler)
        session.start()
        session.reveal()
        store.fail_saves = 2

        with pytest.raises(PersistError):
            session.grade(Grade.HARD)
        with pytest.raises(PersistError):
            session.retry()

        session.retry()

        assert scheduler.call_count == 1
        assert len(store.saved) == 1

    def test_cancel_drops_only_unsaved_grade(self, store, clock):
        session = make_session(store, clock)
        session.start()
        session.reveal()
        session.grade(Grade.GOOD)
        session.reveal()
        store.fail_saves = 1

        with pytest.raises(PersistError):
            session.grade(Grade.GOOD)
        snap = session.cancel()

        assert snap.state == SessionState.CANCELLED
        assert snap.reviewed == 1
        assert [r.card_id for r, _ in store.saved] == ["a"]
        with pytest.raises(SessionStateError):
            session.retry()

    def test_retry_without_failure(self, store, clock):
        session = make_session(store, clock)
        session.start()

        with pytest.raises(SessionStateError):
            session.retry()

    def test_cancel_twice(self, store, clock):
        session = make_session(store, clock)
        session.start()
        session.cancel()

        with pytest.raises(SessionStateError):
            session.cancel()


class TestCorruptRecord:

    def test_corrupt_record_flagged_and_skipped(self, clock, yesterday):
        store = MemoryStore([
            make_record("bad", yesterday, ease_factor=0.9),
            make_record("good", NOW),
        ])
        session = make_session(store, clock)
        session.start()
        session.reveal()

        with pytest.raises(InvalidRecordError):
            session.grade(Grade.GOOD)

        assert store.flagged == ["bad"]
        assert store.saved == []
        assert session.state == SessionState.PRESENTING
        assert session.current_card_id == "good"
        assert "bad" in session.snapshot().error

    def test_flagged_card_stays_out_of_later_sessions(self, clock, yesterday):
        store = MemoryStore([
            make_record("bad", yesterday, ease_factor=0.9),
            make_record("good", NOW),
        ])
        first = make_session(store, clock, card_ids=["bad", "good"])
        first.start()
        first.reveal()
        with pytest.raises(InvalidRecordError):
            first.grade(Grade.GOOD)
        first.cancel()

        second = make_session(store, clock, card_ids=["bad", "good"])
        second.start()

        assert second.queue == ("good",)
        assert count_due_cards(store, 1, ["bad", "good"], now=NOW) == 1


class TestSubscriptions:

    def test_snapshots_follow_transitions(self, store, clock):
        session = make_session(store, clock)
        seen = []
        session.subscribe(seen.append)

        session.start()
        session.reveal()
        session.grade(Grade.GOOD)

        assert [s.state for s in seen] == [
            SessionState.PRESENTING,
            SessionState.AWAITING_GRADE,
            SessionState.ADVANCING,
            SessionState.PRESENTING,
        ]
        assert seen[-1].current_card_id == "b"
        assert seen[-1].reviewed == 1
        assert seen[-1].remaining == 1
        assert seen[-1].last_record.card_id == "a"

    def test_snapshots_are_immutable(self, store, clock):
        session = make_session(store, clock)
        snap = session.start()

        with pytest.raises(Exception):
            snap.state = SessionState.CANCELLED
        assert session.state == SessionState.PRESENTING

    def test_unsubscribe(self, store, clock):
        session = make_session(store, clock)
        seen = []
        unsubscribe = session.subscribe(seen.append)

        session.start()
        unsubscribe()
        session.reveal()

        assert len(seen) == 1


class TestRegistry:

    def test_one_active_session_per_user(self, store, clock):
        session = start_review_session(store, 1, clock=clock)

        assert registry.active(1) is session
        with pytest.raises(ActiveSessionError):
            start_review_session(store, 1, clock=clock)

    def test_other_users_unaffected(self, store, clock):
        start_review_session(store, 1, clock=clock)

        other = start_review_session(MemoryStore(), 2, clock=clock)

        assert other.state == SessionState.COMPLETED

    def test_finished_session_releases_user(self, store, clock):
        session = start_review_session(store, 1, clock=clock)
        session.cancel()

        assert registry.active(1) is None
        assert start_review_session(store, 1, clock=clock).state == SessionState.PRESENTING

    def test_failed_start_releases_user(self, clock):
        store = MemoryStore()
        store.load_all = Mock(side_effect=PersistError("offline"))
        sessions = SessionRegistry()

        with pytest.raises(PersistError):
            start_review_session(store, 1, sessions=sessions, clock=clock)

        assert sessions.active(1) is None

    def test_clear(self, store, clock):
        start_review_session(store, 1, clock=clock)

        registry.clear()

        assert registry.active(1) is None


def test_count_due_cards_includes_new_cards(store):
    assert count_due_cards(store, 1, now=NOW) == 2
    assert count_due_cards(store, 1, ["a", "fresh"], now=NOW) == 3
