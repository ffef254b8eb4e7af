"""Service fill request model: a provider's bid on an open service."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpr.models.base import Base, ULIDMixin


class ServiceFillRequest(Base, ULIDMixin):
    __tablename__ = "service_fill_request"
    __table_args__ = (
        UniqueConstraint("service_id", "provider_id", name="uq_fill_request_service_provider"),
    )

    service_id: Mapped[str] = mapped_column(String(26), ForeignKey("service.id"), index=True)
    provider_id: Mapped[str] = mapped_column(String(64), index=True)
    bid_amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False))
    proposed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    service = relationship("Service", back_populates="bids")
