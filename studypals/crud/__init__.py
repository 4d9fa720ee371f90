from studypals.crud.user import create_user, get_user
from studypals.crud.deck import (
    create_deck,
    get_decks,
    add_card,
    get_card,
    get_cards,
    delete_card
)
from studypals.crud.review_record import (
    to_schema,
    get_review_record,
    get_review_records,
    get_flagged_card_ids,
    save_review_record,
    flag_review_record,
    delete_review_record
)
from studypals.crud.review_log import build_review_log, get_review_logs

__all__ = [
    "create_user",
    "get_user",
    "create_deck",
    "get_decks",
    "add_card",
    "get_card",
    "get_cards",
    "delete_card",
    "to_schema",
    "get_review_record",
    "get_review_records",
    "get_flagged_card_ids",
    "save_review_record",
    "flag_review_record",
    "delete_review_record",
    "build_review_log",
    "get_review_logs",
]
