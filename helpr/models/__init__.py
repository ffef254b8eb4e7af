"""SQLAlchemy ORM models for the service and service_fill_request tables."""

from helpr.models.base import Base
from helpr.models.service import Service
from helpr.models.service_fill_request import ServiceFillRequest

__all__ = ["Base", "Service", "ServiceFillRequest"]
