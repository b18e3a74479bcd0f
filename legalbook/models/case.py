import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import UUID

from legalbook.db.base_class import Base


class Case(Base):
    """Case records are owned by the case-management service; only the
    fields needed for display enrichment are mirrored here."""

    __tablename__ = "cases"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    case_number = Column(String, nullable=True, index=True)

    client_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    professional_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
