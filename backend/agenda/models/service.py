# backend/agenda/models/service.py
"""
Service catalog snapshot.

The catalog is owned by the marketplace; the engine only reads the reference
duration and the active flag of each service.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func
import ulid

from ..database import Base


class Service(Base):
    """Catalog service with its reference execution duration."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    reference_duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("reference_duration_minutes > 0", name="ck_services_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.name} ({self.reference_duration_minutes} min)>"
