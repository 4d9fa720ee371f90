"""
Persistence contract used by review sessions, and its SQLAlchemy implementation.
"""
import logging
from typing import List, Optional, Protocol, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studypals.crud import (
    delete_review_record,
    flag_review_record,
    get_flagged_card_ids,
    get_review_record,
    get_review_records,
    save_review_record,
    to_schema,
)
from studypals.exceptions import PersistError
from studypals.schemas import CardReviewRecord, ReviewOutcome

logger = logging.getLogger(__name__)


class ReviewStore(Protocol):
    """What the review engine needs from storage. Any durable key-value store will do."""

    def load(self, card_id: str) -> Optional[CardReviewRecord]:
        ...

    def load_all(self) -> List[CardReviewRecord]:
        """Every record that can be scheduled; flagged records are left out"""
        ...

    def save(self, record: CardReviewRecord, outcome: Optional[ReviewOutcome] = None) -> None:
        """Atomically write one record; raise PersistError on failure"""
        ...

    def flag_for_repair(self, card_id: str) -> None:
        ...

    def flagged_card_ids(self) -> Set[str]:
        """Cards whose record is quarantined until it is repaired or reset"""
        ...


class SqlReviewStore:
    """ReviewStore over a SQLAlchemy session, scoped to one user"""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def load(self, card_id: str) -> Optional[CardReviewRecord]:
        db_record = get_review_record(self.db, card_id)
        if db_record is None or db_record.user_id != self.user_id:
            return None
        return to_schema(db_record)

    def load_all(self) -> List[CardReviewRecord]:
        return [to_schema(r) for r in get_review_records(self.db, self.user_id)]

    def save(self, record: CardReviewRecord, outcome: Optional[ReviewOutcome] = None) -> None:
        if record.user_id != self.user_id:
            raise PersistError(
                f"Record for card {record.card_id} belongs to user {record.user_id}, "
                f"not {self.user_id}"
            )
        try:
            save_review_record(self.db, record, outcome)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Saving review record for card %s failed: %s", record.card_id, e)
            raise PersistError(f"Could not save review of card {record.card_id}") from e

    def flag_for_repair(self, card_id: str) -> None:
        try:
            flagged = flag_review_record(self.db, card_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistError(f"Could not flag card {card_id} for repair") from e
        if flagged:
            logger.warning("Card %s flagged for manual repair", card_id)

    def flagged_card_ids(self) -> Set[str]:
        return set(get_flagged_card_ids(self.db, self.user_id))

    def reset(self, card_id: str) -> bool:
        """Forget a card's schedule so it is presented as new again"""
        try:
            return delete_review_record(self.db, card_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistError(f"Could not reset card {card_id}") from e
