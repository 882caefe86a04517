"""
Storage model for imported animals.

The import pipeline treats this table as an append-only bulk-insert sink:
rows are only ever inserted, never updated in place.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String, Text
from sqlalchemy.engine import Engine

from livestock_import.db.session import Base

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Animal(Base):
    __tablename__ = "animals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    farm_id = Column(String(64), nullable=False, index=True)
    tag = Column(String(128), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False, default="Other")
    breed = Column(String(128))
    age = Column(String(64))
    weight = Column(String(64))
    status = Column(String(32), nullable=False, default="Healthy")
    sex = Column(String(32))
    date_of_birth = Column(String(64))
    purchase_cost = Column(Float)
    feed_type = Column(String(128))
    notes = Column(Text)
    microchip_number = Column(String(128))
    brand_mark = Column(String(128))
    color_markings = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


def create_animals_table(engine: Engine) -> None:
    """Create the animals table if it does not exist yet."""
    Animal.__table__.create(bind=engine, checkfirst=True)
    logger.info("animals table ready")
