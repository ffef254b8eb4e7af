from __future__ import annotations
from typing import Any
from pydantic import BaseModel


class ChangeEvent(BaseModel):
    """Row change notification. Used only as a refresh trigger, never as state."""

    table: str  # service | service_fill_request
    operation: str  # INSERT | UPDATE | DELETE
    new_row: dict[str, Any] = {}
