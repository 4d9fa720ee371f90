import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from studypals.config import settings

logger = logging.getLogger(__name__)

connect_args = {}
if settings.database_url.startswith("sqlite"):
    # CLI and tests may touch the same connection from different threads
    connect_args["check_same_thread"] = False

engine = create_engine(settings.database_url, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables"""
    # Import models so they register on Base.metadata
    import studypals.models  # noqa: F401

    target = bind if bind is not None else engine
    logger.info("Creating tables on %s", target.url)
    Base.metadata.create_all(bind=target)
