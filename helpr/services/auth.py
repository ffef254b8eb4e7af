"""Acting-user context and the persisted client session store.

The apps kept the signed-in user and a "return here after login" payload in
process-wide globals. Here they travel as an explicit ClientContext, and what
must survive a restart sits behind the small SessionStore interface.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

ROLES = ("customer", "provider")


@dataclass
class ClientContext:
    user_id: str
    role: str  # 'customer' | 'provider'
    return_to: dict[str, Any] | None = field(default=None)

    @property
    def is_provider(self) -> bool:
        return self.role == "provider"

    @property
    def is_customer(self) -> bool:
        return self.role == "customer"

    def take_return_to(self) -> dict[str, Any] | None:
        """Pop the pending post-login destination, if any."""
        payload, self.return_to = self.return_to, None
        return payload


class SessionStore(Protocol):
    def load(self) -> ClientContext | None: ...

    def save(self, context: ClientContext) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    def __init__(self, context: ClientContext | None = None):
        self._context = context

    def load(self) -> ClientContext | None:
        return self._context

    def save(self, context: ClientContext) -> None:
        self._context = context

    def clear(self) -> None:
        self._context = None


class FileSessionStore:
    """JSON file holding one ClientContext."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> ClientContext | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ClientContext(**data)
        except (ValueError, TypeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    def save(self, context: ClientContext) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(context)), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def resume_pending(store: SessionStore) -> dict[str, Any] | None:
    """Pop the signed-in user's pending destination and persist the cleared context."""
    context = store.load()
    if context is None:
        return None
    payload = context.take_return_to()
    if payload is not None:
        store.save(context)
    return payload
