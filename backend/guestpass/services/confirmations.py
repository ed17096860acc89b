"""Two-step confirmation for destructive admin actions.

The first call records the intent and hands back a token; the action only
runs when that token is presented again before it expires.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from guestpass.core.config import settings
from guestpass.core.exceptions import ConfirmationError
from guestpass.core.security import generate_confirmation_token

logger = logging.getLogger(__name__)

DELETE_GUEST = "delete_guest"
DELETE_CATEGORY = "delete_category"
RESET_CATEGORIES = "reset_categories"


@dataclass(frozen=True)
class PendingAction:
    token: str
    action: str
    target: Optional[str]
    expires_at: datetime
    prompt: str = ""


class ConfirmationRegistry:
    def __init__(self, ttl_seconds: int = None):
        self.ttl = timedelta(seconds=ttl_seconds or settings.CONFIRMATION_TTL_SECONDS)
        self._pending: Dict[str, PendingAction] = {}
        self._lock = threading.Lock()

    def request(self, action: str, target: Optional[str] = None, prompt: str = "") -> PendingAction:
        now = datetime.now(timezone.utc)
        pending = PendingAction(
            token=generate_confirmation_token(),
            action=action,
            target=target,
            expires_at=now + self.ttl,
            prompt=prompt,
        )
        with self._lock:
            self._purge(now)
            self._pending[pending.token] = pending
        logger.info(f"Confirmation requested: {action} {target or ''}".rstrip())
        return pending

    def confirm(self, token: str, action: str, target: Optional[str] = None) -> PendingAction:
        """Consume a token; it must match the action and target it was issued for"""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._purge(now)
            pending = self._pending.get(token)
            if pending is None:
                raise ConfirmationError("Confirmation token is invalid or has expired")
            if pending.action != action or pending.target != target:
                raise ConfirmationError("Confirmation token does not match this action")
            del self._pending[token]
        logger.info(f"Confirmed: {action} {target or ''}".rstrip())
        return pending

    def _purge(self, now: datetime):
        expired = [t for t, p in self._pending.items() if p.expires_at <= now]
        for token in expired:
            del self._pending[token]


# Singleton instance
confirmation_registry = ConfirmationRegistry()
