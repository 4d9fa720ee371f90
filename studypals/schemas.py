from pydantic import BaseModel, field_validator
from typing import Any, Optional
from datetime import datetime
from enum import Enum

from studypals.exceptions import InvalidGradeError


class Grade(str, Enum):
    """Recall quality reported for a single review"""
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class CardType(str, Enum):
    """How a flashcard is studied"""
    BASIC = "basic"
    CLOZE = "cloze"
    REVERSE = "reverse"


def parse_grade(value: Any) -> Grade:
    """Coerce a Grade or its name ("good", "GOOD") to a Grade, else InvalidGradeError"""
    if isinstance(value, Grade):
        return value
    if isinstance(value, str):
        try:
            return Grade(value.strip().lower())
        except ValueError:
            pass
    raise InvalidGradeError(
        f"Invalid grade {value!r}; expected one of {', '.join(g.value for g in Grade)}"
    )


class CardReviewRecord(BaseModel):
    """Scheduling state of one flashcard.

    Immutable: the scheduler returns a new record for every review.
    Invariants are checked by SM2Algorithm.validate_record rather than here,
    so that corrupt rows can still be loaded and flagged.
    """
    card_id: str
    user_id: int
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    due_at: datetime
    last_reviewed_at: Optional[datetime] = None
    last_grade: Optional[Grade] = None

    @property
    def is_new(self) -> bool:
        return self.interval_days == 0 and self.last_reviewed_at is None

    class Config:
        frozen = True
        from_attributes = True


class ReviewOutcome(BaseModel):
    """A graded review, not persisted on its own"""
    card_id: str
    grade: Grade
    reviewed_at: datetime

    @field_validator("grade", mode="before")
    @classmethod
    def check_grade(cls, value):
        return parse_grade(value)

    class Config:
        frozen = True


class UserCreate(BaseModel):
    """Schema for creating a user"""
    name: str


class DeckCreate(BaseModel):
    """Schema for creating a deck"""
    user_id: int
    title: str


class CardCreate(BaseModel):
    """Schema for adding a flashcard to a deck"""
    deck_id: int
    front: str
    back: str
    card_type: CardType = CardType.BASIC
    cloze_mask: Optional[str] = None


class ReviewStats(BaseModel):
    """Counts shown on the progress dashboard"""
    total: int
    due: int
    reviewed_today: int
    learning: int
    mature: int
