"""
SQLAlchemy ORM models for CityBreaker.

One model:
  Document — a JSON document addressed by (collection, key).  Backs the SQL
             implementation of the document store, which in turn holds the
             place-enrichment cache, the itinerary cache and the PDF job records.

Default database: SQLite (citybreaker.db).
Production: set DATABASE_URL to a PostgreSQL connection string — no code
changes required.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base


def _utcnow():
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


# db is kept as a module-level name so external imports (database.py,
# migrations/env.py) can reference db.metadata for table creation.
db = declarative_base()


class Document(db):
    __tablename__ = 'documents'

    collection = Column(String(64),  primary_key=True)
    key        = Column(String(255), primary_key=True)
    body       = Column(Text, nullable=False)           # JSON object
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow,
                        onupdate=_utcnow)

    def to_dict(self) -> dict:
        return json.loads(self.body) if self.body else {}

    def __repr__(self):
        return f'<Document {self.collection}/{self.key}>'
