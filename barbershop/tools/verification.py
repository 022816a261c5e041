"""
One-time email verification codes for stamp card access.

A code is six random digits, stored against the lowercased email with a
fixed expiry. Issuing again overwrites the live code; a successful
verification deletes it so it cannot be reused.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from barbershop.clients.errors import BackendError
from barbershop.clients.store import DataStore
from barbershop.config import settings

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_code() -> str:
    """Uniformly random code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


class VerificationCodeService:
    """Issues and checks codes against the store."""

    def __init__(
        self,
        store: DataStore,
        ttl_minutes: int = settings.booking.verification_code_ttl_minutes,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._ttl = timedelta(minutes=ttl_minutes)
        self._now = now
        self._code_factory = code_factory

    @property
    def ttl_minutes(self) -> int:
        return int(self._ttl.total_seconds() // 60)

    async def issue(self, email: str) -> tuple[str, datetime]:
        """Create (or replace) the live code for ``email``; returns code and expiry."""
        code = self._code_factory()
        expires_at = self._now() + self._ttl
        await self._store.upsert_verification_code(email.lower(), code, expires_at)
        logger.info("Verification code issued for %s, expires %s", email.lower(), expires_at)
        return code, expires_at

    async def verify(self, email: str, code: str) -> bool:
        """Accept a matching unexpired code once; it is deleted on success."""
        record = await self._store.find_live_verification_code(
            email.lower(), code.strip(), self._now()
        )
        if record is None:
            logger.info("Verification failed for %s", email.lower())
            return False

        if record.id:
            try:
                await self._store.delete_verification_code(record.id)
            except BackendError as exc:
                # The code was valid; the caller still gets verified.
                logger.error("Failed to delete verification code %s: %s", record.id, exc)
        logger.info("Verification succeeded for %s", email.lower())
        return True
