from studypals.models.user import User
from studypals.models.deck import Deck
from studypals.models.card import Card
from studypals.models.review_record import ReviewRecord
from studypals.models.review_log import ReviewLog

__all__ = [
    "User",
    "Deck",
    "Card",
    "ReviewRecord",
    "ReviewLog"
]
