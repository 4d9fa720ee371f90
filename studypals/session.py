"""
Review sessions: walk the user through the cards that are due, one at a time.

A session takes a snapshot of the due queue when it starts and never
re-queries it, so cards that become due mid-session wait for the next one.
State changes are published as immutable SessionSnapshot values to
subscribers instead of being exposed as mutable fields.
"""
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from studypals.due_queue import due_card_ids, due_count
from studypals.exceptions import (
    ActiveSessionError,
    InvalidRecordError,
    PersistError,
    SessionStateError,
)
from studypals.schemas import CardReviewRecord, ReviewOutcome, parse_grade
from studypals.sm2 import SM2Algorithm
from studypals.store import ReviewStore

logger = logging.getLogger(__name__)

Scheduler = Callable[[CardReviewRecord, ReviewOutcome], CardReviewRecord]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_GRADE = "awaiting_grade"
    ADVANCING = "advancing"
    PERSIST_FAILED = "persist_failed"  # graded, waiting for retry() or cancel()
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATES = (SessionState.COMPLETED, SessionState.CANCELLED)


class SessionSnapshot(BaseModel):
    """Point-in-time view of a review session"""
    state: SessionState
    current_card_id: Optional[str] = None
    position: int = 0  # index of the current card in the queue
    total: int = 0
    reviewed: int = 0  # grades persisted so far
    last_record: Optional[CardReviewRecord] = None
    error: Optional[str] = None

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.position)

    class Config:
        frozen = True


class GradeResult(BaseModel):
    """What grading one card produced"""
    card_id: str
    record: CardReviewRecord
    next_card_id: Optional[str] = None

    class Config:
        frozen = True


def collect_records(
    store: ReviewStore,
    user_id: int,
    card_ids: Iterable[str],
    now: datetime,
) -> Dict[str, CardReviewRecord]:
    """
    Stored records for the user plus fresh records for cards never reviewed.

    Fresh records are due at `now` and only reach storage once graded.
    Cards flagged for repair get neither, so they stay out of the queue
    until they are reset.
    """
    records = {r.card_id: r for r in store.load_all()}
    flagged = store.flagged_card_ids()
    for card_id in card_ids:
        if card_id not in records and card_id not in flagged:
            records[card_id] = SM2Algorithm.new_record(card_id, user_id, now)
    return records


def count_due_cards(
    store: ReviewStore,
    user_id: int,
    card_ids: Iterable[str] = (),
    now: datetime = None,
) -> int:
    """dueCount for the dashboard: stored records due now plus never-reviewed cards"""
    now = now or utcnow()
    return due_count(collect_records(store, user_id, card_ids, now).values(), now)


class ReviewSession:
    """
    Controller for one review pass.

    Flow: IDLE -start-> PRESENTING -reveal-> AWAITING_GRADE -grade-> ADVANCING
    -> PRESENTING (next card) or COMPLETED. cancel() ends the session early.
    If saving a graded card fails the session waits in PERSIST_FAILED; retry()
    saves the same result again without re-running the scheduler.
    """

    def __init__(
        self,
        store: ReviewStore,
        user_id: int,
        card_ids: Iterable[str] = (),
        clock: Callable[[], datetime] = utcnow,
        scheduler: Scheduler = SM2Algorithm.schedule,
    ):
        self._store = store
        self.user_id = user_id
        self._card_ids = list(card_ids)
        self._clock = clock
        self._scheduler = scheduler

        self._state = SessionState.IDLE
        self._queue: List[str] = []
        self._records: Dict[str, CardReviewRecord] = {}
        self._position = 0
        self._reviewed = 0
        self._pending: Optional[Tuple[ReviewOutcome, CardReviewRecord]] = None
        self._last_record: Optional[CardReviewRecord] = None
        self._error: Optional[str] = None
        self._subscribers: List[Callable[[SessionSnapshot], None]] = []

    # -- observation -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_finished(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def queue(self) -> Tuple[str, ...]:
        return tuple(self._queue)

    @property
    def current_card_id(self) -> Optional[str]:
        if self._position < len(self._queue) and not self.is_finished:
            return self._queue[self._position]
        return None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            current_card_id=self.current_card_id,
            position=self._position,
            total=len(self._queue),
            reviewed=self._reviewed,
            last_record=self._last_record,
            error=self._error,
        )

    def subscribe(self, callback: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """Call `callback` with a snapshot on every state change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, state: SessionState, error: Optional[str] = None):
        self._state = state
        self._error = error
        snap = self.snapshot()
        for callback in list(self._subscribers):
            callback(snap)

    def _require(self, *states: SessionState):
        if self._state not in states:
            expected = ", ".join(s.value for s in states)
            raise SessionStateError(
                f"Session is {self._state.value}; expected {expected}"
            )

    # -- transitions -------------------------------------------------------

    def start(self) -> SessionSnapshot:
        """Snapshot the due queue and present the first card"""
        self._require(SessionState.IDLE)
        now = self._clock()
        self._records = collect_records(self._store, self.user_id, self._card_ids, now)
        self._queue = due_card_ids(self._records.values(), now)
        logger.info(
            "Review session for user %s started with %d due card(s)",
            self.user_id, len(self._queue)
        )
        self._show_current()
        return self.snapshot()

    def reveal(self) -> str:
        """Show the current card; the session then waits for a grade"""
        self._require(SessionState.PRESENTING)
        card_id = self.current_card_id
        self._set_state(SessionState.AWAITING_GRADE)
        return card_id

    def grade(self, grade, reviewed_at: datetime = None) -> GradeResult:
        """
        Grade the current card, schedule it and save it.

        Raises:
            InvalidGradeError: grade is malformed; nothing changes
            InvalidRecordError: stored record is corrupt; it is flagged and skipped
            PersistError: save failed; call retry() or cancel()
        """
        self._require(SessionState.AWAITING_GRADE)
        grade = parse_grade(grade)

        card_id = self.current_card_id
        outcome = ReviewOutcome(
            card_id=card_id,
            grade=grade,
            reviewed_at=reviewed_at or self._clock(),
        )
        self._set_state(SessionState.ADVANCING)

        try:
            updated = self._scheduler(self._records[card_id], outcome)
        except InvalidRecordError as e:
            self._flag(card_id)
            self._position += 1
            self._show_current(error=str(e))
            raise

        self._records[card_id] = updated
        self._pending = (outcome, updated)
        return self._save_pending()

    def retry(self) -> GradeResult:
        """Save the held result of the last grade again"""
        self._require(SessionState.PERSIST_FAILED)
        self._set_state(SessionState.ADVANCING)
        return self._save_pending()

    def cancel(self) -> SessionSnapshot:
        """End the session; grades already saved stay saved"""
        if self.is_finished:
            raise SessionStateError(f"Session is already {self._state.value}")
        if self._pending is not None:
            logger.warning(
                "Review session cancelled with unsaved grade for card %s",
                self._pending[0].card_id
            )
        self._pending = None
        self._set_state(SessionState.CANCELLED)
        logger.info("Review session for user %s cancelled after %d review(s)", self.user_id, self._reviewed)
        return self.snapshot()

    # -- internals ---------------------------------------------------------

    def _save_pending(self) -> GradeResult:
        outcome, record = self._pending
        try:
            self._store.save(record, outcome)
        except PersistError as e:
            logger.warning("Could not save review of card %s: %s", outcome.card_id, e)
            self._set_state(SessionState.PERSIST_FAILED, error=str(e))
            raise

        self._pending = None
        self._reviewed += 1
        self._last_record = record
        self._position += 1
        self._show_current()
        return GradeResult(
            card_id=outcome.card_id,
            record=record,
            next_card_id=self.current_card_id,
        )

    def _show_current(self, error: Optional[str] = None):
        if self._position < len(self._queue):
            self._set_state(SessionState.PRESENTING, error=error)
        else:
            self._set_state(SessionState.COMPLETED, error=error)
            logger.info(
                "Review session for user %s completed: %d card(s) reviewed",
                self.user_id, self._reviewed
            )

    def _flag(self, card_id: str):
        try:
            self._store.flag_for_repair(card_id)
        except PersistError as e:
            logger.error("Could not flag card %s for repair: %s", card_id, e)


class SessionRegistry:
    """
    Tracks the active review session of each user.

    At most one unfinished session per user: a second one would grade from a
    stale snapshot. Use clear() to tear down between runs or tests.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Dict[int, ReviewSession] = {}

    def open(self, store: ReviewStore, user_id: int, card_ids: Iterable[str] = (), **kwargs) -> ReviewSession:
        """Create a session for the user, or raise ActiveSessionError"""
        with self._lock:
            existing = self._active.get(user_id)
            if existing is not None and not existing.is_finished:
                raise ActiveSessionError(f"User {user_id} already has a review session in progress")
            session = ReviewSession(store, user_id, card_ids, **kwargs)
            self._active[user_id] = session

        def release(snap: SessionSnapshot):
            if snap.state in TERMINAL_STATES:
                self.release(user_id, session)

        session.subscribe(release)
        return session

    def active(self, user_id: int) -> Optional[ReviewSession]:
        with self._lock:
            session = self._active.get(user_id)
            if session is not None and session.is_finished:
                return None
            return session

    def release(self, user_id: int, session: ReviewSession):
        with self._lock:
            if self._active.get(user_id) is session:
                del self._active[user_id]

    def clear(self):
        with self._lock:
            self._active.clear()


registry = SessionRegistry()


def start_review_session(
    store: ReviewStore,
    user_id: int,
    card_ids: Iterable[str] = (),
    sessions: SessionRegistry = None,
    **kwargs,
) -> ReviewSession:
    """Open and start a review session; the "Start Review" entry point"""
    sessions = sessions or registry
    session = sessions.open(store, user_id, card_ids, **kwargs)
    try:
        session.start()
    except Exception:
        sessions.release(user_id, session)
        raise
    return session
