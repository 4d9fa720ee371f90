from sqlalchemy.orm import Session
from studypals.models import ReviewLog
from studypals.schemas import CardReviewRecord, ReviewOutcome
from typing import List

def build_review_log(outcome: ReviewOutcome, record: CardReviewRecord) -> ReviewLog:
    """Log row for an applied review outcome and the schedule it produced"""
    return ReviewLog(
        user_id=record.user_id,
        card_id=outcome.card_id,
        grade=outcome.grade.value,
        reviewed_at=outcome.reviewed_at,
        interval_days=record.interval_days,
        ease_factor=record.ease_factor
    )

def get_review_logs(db: Session, user_id: int, limit: int = 50) -> List[ReviewLog]:
    """Get a user's most recent reviews"""
    return db.query(ReviewLog).filter(
        ReviewLog.user_id == user_id
    ).order_by(ReviewLog.reviewed_at.desc(), ReviewLog.id.desc()).limit(limit).all()
