from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from studypals.database import Base

class ReviewLog(Base):
    """One applied review outcome, kept for history"""
    __tablename__ = "review_logs"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    card_id = Column(String, ForeignKey("cards.id"), nullable=False)
    
    grade = Column(String, nullable=False)
    reviewed_at = Column(DateTime, nullable=False)
    
    # Schedule produced by this review
    interval_days = Column(Integer, nullable=False)
    ease_factor = Column(Float, nullable=False)
    
    card = relationship("Card", back_populates="review_logs")
