"""
Due queue: which cards are ready for review, and in what order.

Pure functions over review records; nothing here touches the database.
"""
from datetime import datetime
from typing import Iterable, List, Sequence, TypeVar

from studypals.schemas import CardReviewRecord

CardT = TypeVar("CardT")


def _queue_key(record: CardReviewRecord):
    # Most overdue first; card id keeps ties deterministic
    return (record.due_at, record.card_id)


def due_records(records: Iterable[CardReviewRecord], now: datetime) -> List[CardReviewRecord]:
    """Records with due_at <= now, earliest due first"""
    return sorted((r for r in records if r.due_at <= now), key=_queue_key)


def due_card_ids(records: Iterable[CardReviewRecord], now: datetime) -> List[str]:
    """Card ids due for review, in presentation order"""
    return [r.card_id for r in due_records(records, now)]


def due_count(records: Iterable[CardReviewRecord], now: datetime) -> int:
    """Number of cards due, as shown on the dashboard badge"""
    return sum(1 for r in records if r.due_at <= now)


def due_cards(
    cards: Sequence[CardT],
    records: Iterable[CardReviewRecord],
    now: datetime,
    card_id=lambda card: card.id,
) -> List[CardT]:
    """
    Filter a card collection down to the cards that are due.

    Cards come back in queue order. Cards without a record are skipped;
    callers that want new cards included should create their records first.

    Args:
        cards: Flashcards (any objects carrying an id)
        records: Review records for those cards
        now: Reference time
        card_id: How to read the id off a card
    """
    by_id = {card_id(card): card for card in cards}
    return [by_id[cid] for cid in due_card_ids(records, now) if cid in by_id]
