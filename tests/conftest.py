"""
Shared test fixtures.

Provides:
- In-memory SQLite engine/session with all tables created
- A user with one deck of three cards
- MemoryStore, a dict-backed ReviewStore with injectable save failures
- A fixed clock
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studypals.crud import add_card, create_deck, create_user
from studypals.database import init_db
from studypals.exceptions import PersistError
from studypals.schemas import CardCreate, CardReviewRecord, DeckCreate, UserCreate
from studypals.session import registry
from studypals.store import SqlReviewStore


NOW = datetime(2026, 3, 10, 9, 0, 0)


def make_record(card_id: str, due_at: datetime = NOW, user_id: int = 1, **fields) -> CardReviewRecord:
    return CardReviewRecord(card_id=card_id, user_id=user_id, due_at=due_at, **fields)


class MemoryStore:
    """ReviewStore kept in a dict; set fail_saves to make the next N saves fail."""

    def __init__(self, records=()):
        self.records = {r.card_id: r for r in records}
        self.saved = []
        self.flagged = []
        self.fail_saves = 0

    def load(self, card_id):
        return self.records.get(card_id)

    def load_all(self):
        return [r for r in self.records.values() if r.card_id not in self.flagged]

    def save(self, record, outcome=None):
        if self.fail_saves:
            self.fail_saves -= 1
            raise PersistError(f"Could not save review of card {record.card_id}")
        self.records[record.card_id] = record
        self.saved.append((record, outcome))

    def flag_for_repair(self, card_id):
        if card_id in self.records:
            self.flagged.append(card_id)

    def flagged_card_ids(self):
        return set(self.flagged)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture(autouse=True)
def clear_sessions():
    """Each test starts without active review sessions."""
    registry.clear()
    yield
    registry.clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    return create_user(db, UserCreate(name="Ada"))


@pytest.fixture
def deck(db, user):
    return create_deck(db, DeckCreate(user_id=user.id, title="Biology"))


@pytest.fixture
def cards(db, deck):
    return [
        add_card(db, CardCreate(deck_id=deck.id, front=f"Question {i}", back=f"Answer {i}"))
        for i in range(3)
    ]


@pytest.fixture
def sql_store(db, user):
    return SqlReviewStore(db, user.id)


@pytest.fixture
def yesterday():
    return NOW - timedelta(days=1)
