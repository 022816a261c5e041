"""Stamp card, verification code and stamp card request models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StampCard(BaseModel):
    """Loyalty record tracking visits and referrals."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    referral_code: str
    stamps: int = 0
    referral_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def stamps_remaining(self, total: int) -> int:
        return max(total - self.stamps, 0)


class VerificationCode(BaseModel):
    """A live one-time code keyed by lowercased email."""
    id: Optional[str] = None
    email: str
    code: str
    expires_at: datetime


class StampCardRequest(BaseModel):
    """A customer's request for a new stamp card, reviewed by staff."""
    id: Optional[str] = None
    name: str
    email: str
    status: str = "pending"
    created_at: Optional[datetime] = None
