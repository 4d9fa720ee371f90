from sqlalchemy.orm import Session
from studypals.models import User
from studypals.schemas import UserCreate
from typing import Optional

def create_user(db: Session, user: UserCreate) -> User:
    """Create a new user"""
    db_user = User(**user.model_dump())
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def get_user(db: Session, user_id: int) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()
