from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from studypals.database import Base

class User(Base):
    """Learner who owns decks and review records"""
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    decks = relationship("Deck", back_populates="user", cascade="all, delete-orphan")
