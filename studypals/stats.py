from datetime import datetime
from typing import Iterable

from studypals.config import settings
from studypals.due_queue import due_count
from studypals.schemas import CardReviewRecord, ReviewStats


def review_stats(
    records: Iterable[CardReviewRecord],
    now: datetime,
    learning_threshold_days: int = None,
    mature_threshold_days: int = None,
) -> ReviewStats:
    """
    Summarise review progress for the dashboard.

    Learning cards have been reviewed but their interval is still short;
    mature cards have an interval of at least `mature_threshold_days`.
    Thresholds default to the configured values.
    """
    if learning_threshold_days is None:
        learning_threshold_days = settings.learning_threshold_days
    if mature_threshold_days is None:
        mature_threshold_days = settings.mature_threshold_days

    records = list(records)
    today = now.date()
    return ReviewStats(
        total=len(records),
        due=due_count(records, now),
        reviewed_today=sum(
            1 for r in records
            if r.last_reviewed_at is not None and r.last_reviewed_at.date() == today
        ),
        learning=sum(
            1 for r in records
            if not r.is_new and r.interval_days < learning_threshold_days
        ),
        mature=sum(1 for r in records if r.interval_days >= mature_threshold_days),
    )
