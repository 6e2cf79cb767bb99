"""
Document table.

Every collection lives in one table keyed by (collection, doc_id);
document bodies are stored as JSON.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DocumentRow(Base):
    """One stored document."""

    __tablename__ = "documents"

    collection = Column(String(255), primary_key=True)
    doc_id = Column(String(255), primary_key=True)

    data = Column(JSON, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DocumentRow {self.collection}/{self.doc_id}>"
