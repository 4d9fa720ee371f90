import os
import threading
import time
import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from studypals.database import Base

_id_lock = threading.Lock()
_last_id_ms = 0

def new_card_id() -> str:
    """
    UUIDv7-style id: a millisecond timestamp followed by random bits.

    Ids compare in creation order as plain strings, so new cards that tie on
    due date are still queued oldest first. The timestamp never repeats within
    a process, even for cards created in the same millisecond.
    """
    global _last_id_ms
    with _id_lock:
        ms = max(time.time_ns() // 1_000_000, _last_id_ms + 1)
        _last_id_ms = ms
    rand = int.from_bytes(os.urandom(10), "big")
    value = (
        (ms & 0xFFFFFFFFFFFF) << 80
        | 0x7 << 76  # version
        | (rand >> 64 & 0xFFF) << 64
        | 0b10 << 62  # variant
        | rand & ((1 << 62) - 1)
    )
    return str(uuid.UUID(int=value))

class Card(Base):
    """Flashcard content; scheduling lives in ReviewRecord"""
    __tablename__ = "cards"
    
    id = Column(String, primary_key=True, default=new_card_id)
    deck_id = Column(Integer, ForeignKey("decks.id"), nullable=False)
    card_type = Column(String, nullable=False, default="basic")  # basic, cloze, reverse
    front = Column(Text, nullable=False)
    back = Column(Text, nullable=False)
    cloze_mask = Column(String)  # e.g. "{{c1::answer}}", cloze cards only
    created_at = Column(DateTime, default=datetime.utcnow)
    
    deck = relationship("Deck", back_populates="cards")
    # Owned 1:1, lifetime bound to the card
    review_record = relationship(
        "ReviewRecord", back_populates="card", uselist=False, cascade="all, delete-orphan"
    )
    review_logs = relationship("ReviewLog", back_populates="card", cascade="all, delete-orphan")
