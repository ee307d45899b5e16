"""Durable key/value row: the client's equivalent of browser local storage (e.g. auth_token)."""
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from taskhub.db.base import Base


class StoredValue(Base):
    __tablename__ = "stored_values"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
