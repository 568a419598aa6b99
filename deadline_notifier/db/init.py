"""Initialize database tables."""
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Import all models so their tables are registered on SQLModel.metadata
from deadline_notifier import models  # noqa: F401
from deadline_notifier.db.config import get_engine

logger = logging.getLogger(__name__)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables in the database."""
    engine = engine or get_engine()
    logger.info("Creating reminder engine tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
