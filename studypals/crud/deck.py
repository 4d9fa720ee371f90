import logging
from sqlalchemy.orm import Session
from studypals.exceptions import NotFoundError
from studypals.models import Card, Deck
from studypals.schemas import CardCreate, DeckCreate
from typing import List, Optional

logger = logging.getLogger(__name__)

def create_deck(db: Session, deck: DeckCreate) -> Deck:
    """Create a deck for a user"""
    db_deck = Deck(**deck.model_dump())
    db.add(db_deck)
    db.commit()
    db.refresh(db_deck)
    return db_deck

def get_decks(db: Session, user_id: int) -> List[Deck]:
    """Get all decks owned by a user"""
    return db.query(Deck).filter(Deck.user_id == user_id).order_by(Deck.id).all()

def add_card(db: Session, card: CardCreate) -> Card:
    """Add a flashcard to an existing deck"""
    deck = db.query(Deck).filter(Deck.id == card.deck_id).first()
    if not deck:
        raise NotFoundError(f"Deck {card.deck_id} not found")
    
    data = card.model_dump()
    data["card_type"] = card.card_type.value
    db_card = Card(**data)
    db.add(db_card)
    db.commit()
    db.refresh(db_card)
    return db_card

def get_card(db: Session, card_id: str) -> Optional[Card]:
    """Get card by ID"""
    return db.query(Card).filter(Card.id == card_id).first()

def get_cards(db: Session, user_id: int, deck_id: Optional[int] = None) -> List[Card]:
    """Get a user's cards, optionally limited to one deck"""
    query = db.query(Card).join(Deck).filter(Deck.user_id == user_id)
    if deck_id is not None:
        query = query.filter(Card.deck_id == deck_id)
    return query.order_by(Card.created_at, Card.id).all()

def delete_card(db: Session, card_id: str) -> None:
    """Delete a card together with its review record and review logs"""
    card = get_card(db, card_id)
    if not card:
        raise NotFoundError(f"Card {card_id} not found")
    db.delete(card)
    db.commit()
    logger.info("Deleted card %s", card_id)
