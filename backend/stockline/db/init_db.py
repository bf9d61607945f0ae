"""Create all tables. Run on app startup."""
import logging

from stockline.db.base import Base
from stockline.db.session import engine
from stockline.models import merchant, product, customer, sale, clarification  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
