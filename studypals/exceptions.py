"""
Exceptions raised by the review engine.
"""


class StudyPalsException(Exception):
    """Base exception for all StudyPals exceptions."""
    pass


class InvalidGradeError(StudyPalsException):
    """Raised when a review grade is not one of again/hard/good/easy."""
    pass


class InvalidRecordError(StudyPalsException):
    """Raised when a review record breaks a scheduling invariant.

    Signals corrupt data: the record gets flagged for repair, never silently fixed.
    """

    def __init__(self, message: str, card_id: str = None):
        super().__init__(message)
        self.card_id = card_id


class PersistError(StudyPalsException):
    """Raised when saving a review record fails. Safe to retry."""
    pass


class NotFoundError(StudyPalsException):
    """Raised when a requested user, deck or card does not exist."""
    pass


class SessionStateError(StudyPalsException):
    """Raised when a review session operation is called in the wrong state."""
    pass


class ActiveSessionError(StudyPalsException):
    """Raised when a user already has a review session in progress."""
    pass
