"""Service model: one row per job request, moved through the status lifecycle."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Numeric, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from helpr.models.base import Base, ULIDMixin, TouchedMixin
from helpr.schemas.status import ServiceStatus, normalize_status


class Service(Base, ULIDMixin, TouchedMixin):
    __tablename__ = "service"

    customer_id: Mapped[str] = mapped_column(String(64), index=True)
    service_type: Mapped[str] = mapped_column(String(60), default="Moving")
    # finding_pros | confirmed | helpr_otw | in_progress | completed
    status: Mapped[str] = mapped_column(String(20), default=ServiceStatus.FINDING_PROS.value, index=True)
    assigned_provider_id: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None, index=True)
    start_location: Mapped[str] = mapped_column(String(300), default="")
    end_location: Mapped[str] = mapped_column(String(300), default="")
    price: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True, default=None)
    agreed_price: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True, default=None)
    description: Mapped[str] = mapped_column(Text, default="")
    scheduling_type: Mapped[str] = mapped_column(String(20), default="asap")  # asap | scheduled
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    payment_method_type: Mapped[str] = mapped_column(String(30), default="")

    bids = relationship("ServiceFillRequest", back_populates="service", cascade="all, delete-orphan")

    @validates("status")
    def _normalize_status(self, key, value):
        return normalize_status(value).value
