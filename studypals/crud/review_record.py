from sqlalchemy.orm import Session
from studypals.models import ReviewRecord
from studypals.crud.review_log import build_review_log
from studypals.schemas import CardReviewRecord, ReviewOutcome
from typing import List, Optional

def to_schema(db_record: ReviewRecord) -> CardReviewRecord:
    """Convert a stored row to the immutable record the scheduler works on"""
    return CardReviewRecord.model_validate(db_record)

def get_review_record(db: Session, card_id: str) -> Optional[ReviewRecord]:
    """Get the review record of a card"""
    return db.query(ReviewRecord).filter(ReviewRecord.card_id == card_id).first()

def get_review_records(db: Session, user_id: int) -> List[ReviewRecord]:
    """Get the review records of a user, leaving out those flagged for repair"""
    return db.query(ReviewRecord).filter(
        ReviewRecord.user_id == user_id,
        ReviewRecord.needs_repair.is_(False)
    ).all()

def get_flagged_card_ids(db: Session, user_id: int) -> List[str]:
    """Ids of the user's cards whose record waits for manual repair"""
    rows = db.query(ReviewRecord.card_id).filter(
        ReviewRecord.user_id == user_id,
        ReviewRecord.needs_repair.is_(True)
    ).all()
    return [card_id for (card_id,) in rows]

def save_review_record(
    db: Session,
    record: CardReviewRecord,
    outcome: Optional[ReviewOutcome] = None
) -> ReviewRecord:
    """
    Insert or overwrite the review record of a card (last writer wins).
    
    When the outcome that produced the record is given, its log row is
    written in the same transaction.
    """
    db_record = get_review_record(db, record.card_id)
    if db_record is None:
        db_record = ReviewRecord(card_id=record.card_id)
        db.add(db_record)
    
    db_record.user_id = record.user_id
    db_record.ease_factor = record.ease_factor
    db_record.interval_days = record.interval_days
    db_record.repetitions = record.repetitions
    db_record.due_at = record.due_at
    db_record.last_reviewed_at = record.last_reviewed_at
    db_record.last_grade = record.last_grade.value if record.last_grade else None
    if outcome is not None:
        db.add(build_review_log(outcome, record))
    db.commit()
    return db_record

def flag_review_record(db: Session, card_id: str) -> bool:
    """Mark a record as needing manual repair. Returns False if there is no stored record"""
    db_record = get_review_record(db, card_id)
    if db_record is None:
        return False
    db_record.needs_repair = True
    db.commit()
    return True

def delete_review_record(db: Session, card_id: str) -> bool:
    """Remove a card's scheduling so it starts over as a new card"""
    db_record = get_review_record(db, card_id)
    if db_record is None:
        return False
    db.delete(db_record)
    db.commit()
    return True
