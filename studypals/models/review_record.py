from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from studypals.database import Base

class ReviewRecord(Base):
    """SM-2 scheduling state per flashcard"""
    __tablename__ = "review_records"
    
    card_id = Column(String, ForeignKey("cards.id"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # SM-2 algorithm fields
    ease_factor = Column(Float, nullable=False, default=2.5)
    interval_days = Column(Integer, nullable=False, default=0)  # 0 = never scheduled
    repetitions = Column(Integer, nullable=False, default=0)  # consecutive passes
    
    due_at = Column(DateTime, nullable=False, index=True)
    last_reviewed_at = Column(DateTime)
    last_grade = Column(String)  # again, hard, good, easy
    
    needs_repair = Column(Boolean, nullable=False, default=False)
    
    card = relationship("Card", back_populates="review_record")
