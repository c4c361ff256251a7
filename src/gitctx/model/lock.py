"""Advisory locks on task identifiers or file paths."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from gitctx.model.common import utcnow

DEFAULT_LOCK_EXPIRY = timedelta(hours=4)


@dataclass
class Lock:
    """A time-bounded exclusion marker.

    Expiry is never stored as state; an expired lock looks exactly like an
    active one on disk and must be re-checked on every read.
    """

    target: str
    holder: str
    acquired_at: datetime
    expires_at: datetime
    shared: bool = False

    @classmethod
    def create(
        cls,
        target: str,
        holder: str,
        *,
        expiry: timedelta = DEFAULT_LOCK_EXPIRY,
        shared: bool = False,
        now: datetime | None = None,
    ) -> Lock:
        ts = now or utcnow()
        return cls(
            target=target,
            holder=holder,
            acquired_at=ts,
            expires_at=ts + expiry,
            shared=shared,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def is_held_by(self, user: str) -> bool:
        return self.holder == user
