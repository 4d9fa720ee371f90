import math
from datetime import datetime, timedelta

from studypals.exceptions import InvalidRecordError
from studypals.schemas import CardReviewRecord, Grade, ReviewOutcome, parse_grade

INITIAL_EASE = 2.5
MIN_EASE = 1.3
AGAIN_PENALTY = 0.2

# Ease adjustment applied after a passing review
EASE_DELTAS = {
    Grade.HARD: -0.15,
    Grade.GOOD: 0.0,
    Grade.EASY: 0.15,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2Algorithm:
    """
    SM-2 spaced repetition scheduling for flashcard reviews.
    Based on SuperMemo 2 algorithm by Piotr Wozniak, with the four-button
    grading (again/hard/good/easy) used by the app instead of a 0-5 quality.

    All methods are pure: records are immutable and nothing is persisted here.
    """

    @staticmethod
    def new_record(card_id: str, user_id: int, now: datetime) -> CardReviewRecord:
        """
        Create the scheduling record for a card seen for the first time.

        The card is due immediately and has never been scheduled.
        """
        return CardReviewRecord(
            card_id=card_id,
            user_id=user_id,
            ease_factor=INITIAL_EASE,
            interval_days=0,
            repetitions=0,
            due_at=now,
        )

    @staticmethod
    def validate_record(record: CardReviewRecord) -> None:
        """Raise InvalidRecordError if the record breaks an invariant"""
        problems = []
        if record.ease_factor < MIN_EASE:
            problems.append(f"ease_factor {record.ease_factor} < {MIN_EASE}")
        if record.interval_days < 0:
            problems.append(f"interval_days {record.interval_days} < 0")
        if record.repetitions < 0:
            problems.append(f"repetitions {record.repetitions} < 0")
        if record.due_at is None:
            problems.append("due_at is missing")

        if problems:
            raise InvalidRecordError(
                f"Card {record.card_id}: " + "; ".join(problems),
                card_id=record.card_id,
            )

    @staticmethod
    def schedule(record: CardReviewRecord, outcome: ReviewOutcome) -> CardReviewRecord:
        """
        Apply a graded review to a record and return the rescheduled record.

        Args:
            record: Current scheduling state of the card
            outcome: Grade and review time for the same card

        Returns:
            New record with updated ease, interval, repetitions and due date

        Raises:
            InvalidGradeError: grade is not again/hard/good/easy
            InvalidRecordError: record breaks an invariant or belongs to another card
        """
        grade = parse_grade(outcome.grade)
        SM2Algorithm.validate_record(record)
        if outcome.card_id != record.card_id:
            raise InvalidRecordError(
                f"Outcome for card {outcome.card_id} applied to record of card {record.card_id}",
                card_id=record.card_id,
            )

        if grade == Grade.AGAIN:
            # Failed recall: start the card over
            new_repetitions = 0
            new_interval = 1
            new_ease = max(MIN_EASE, record.ease_factor - AGAIN_PENALTY)
        else:
            new_repetitions = record.repetitions + 1

            if new_repetitions == 1:
                new_interval = 1
            elif new_repetitions == 2:
                new_interval = 6
            else:
                # Grow from the previous interval with the ease before this review
                new_interval = max(1, _round_half_up(record.interval_days * record.ease_factor))

            new_ease = max(MIN_EASE, record.ease_factor + EASE_DELTAS[grade])

        return record.model_copy(update={
            "ease_factor": round(new_ease, 2),
            "interval_days": new_interval,
            "repetitions": new_repetitions,
            "due_at": outcome.reviewed_at + timedelta(days=new_interval),
            "last_reviewed_at": outcome.reviewed_at,
            "last_grade": grade,
        })

