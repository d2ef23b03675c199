"""Cache of generated summaries and suggestions.

Rows are keyed by (identity, view mode, hash of the financial snapshot), so a
change in the underlying numbers naturally misses. Storage errors are logged
and reported as a miss; the cache never fails a request.
"""

import json
import logging
import zlib
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import FinancialSnapshot, Identity, Suggestion
from ..storage.repositories import SummaryCacheRepository
from ..storage.tables import SummaryCacheRow, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 24

VIEW_MODES: dict[str, str] = {
    "net-worth": "net-worth",
    "net_worth": "net-worth",
    "networth": "net-worth",
    "dashboard": "net-worth",
    "assets": "assets",
    "liabilities": "liabilities",
}


def view_mode_for(context_type: str | None) -> str | None:
    """Cache view mode for a context type, or None if it is not cached."""
    return VIEW_MODES.get(context_type or "")


def _rounded_snapshot(snapshot: FinancialSnapshot) -> dict[str, float]:
    return {
        "netWorth": round(snapshot.net_worth, 2),
        "assetsTotal": round(snapshot.assets_total, 2),
        "liabilitiesTotal": round(snapshot.liabilities_total, 2),
        "cashTotal": round(snapshot.cash_total, 2),
        "investmentsTotal": round(snapshot.investments_total, 2),
    }


def hash_financial_data(snapshot: FinancialSnapshot) -> str:
    """Non-cryptographic fingerprint of a snapshot, rounded to cents."""
    data = json.dumps(_rounded_snapshot(snapshot), separators=(",", ":"))
    return format(zlib.crc32(data.encode("utf-8")), "x")


class CachedSummary(BaseModel):
    summary_text: str
    financial_data: dict
    data_hash: str
    view_mode: str
    suggestions: list[Suggestion] = Field(default_factory=list)
    suggestion_responses: dict[str, dict[str, str]] = Field(default_factory=dict)
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, row: SummaryCacheRow) -> "CachedSummary":
        return cls(
            summary_text=row.summary_text,
            financial_data=row.financial_data or {},
            data_hash=row.data_hash,
            view_mode=row.view_mode,
            suggestions=[Suggestion.model_validate(s) for s in row.suggestions or []],
            suggestion_responses=row.suggestion_responses or {},
            created_at=row.created_at,
            expires_at=row.expires_at,
        )


class SummaryCache:
    """Summary cache for one database session."""

    def __init__(
        self,
        session: AsyncSession,
        ttl_hours: int = DEFAULT_TTL_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session = session
        self._repo = SummaryCacheRepository(session)
        self.ttl_hours = ttl_hours
        self._clock = clock

    async def _find(
        self, identity: Identity, view_mode: str, snapshot: FinancialSnapshot, include_expired: bool
    ) -> SummaryCacheRow | None:
        return await self._repo.find_latest(
            identity.user_id,
            identity.demo_profile_id,
            view_mode,
            hash_financial_data(snapshot),
            not_expired_at=None if include_expired else self._clock(),
        )

    async def _lookup(
        self, identity: Identity, view_mode: str, snapshot: FinancialSnapshot, include_expired: bool
    ) -> CachedSummary | None:
        if identity.is_anonymous:
            return None
        try:
            row = await self._find(identity, view_mode, snapshot, include_expired)
        except SQLAlchemyError as exc:
            logger.error("Summary cache read failed for %s/%s: %s", identity.key, view_mode, exc)
            return None
        if row is None:
            logger.debug("Summary cache miss for %s/%s", identity.key, view_mode)
            return None
        logger.info("Summary cache hit for %s/%s (expired lookup=%s)", identity.key, view_mode, include_expired)
        return CachedSummary.from_row(row)

    async def get(self, identity: Identity, view_mode: str, snapshot: FinancialSnapshot) -> CachedSummary | None:
        """Freshest non-expired entry for the key."""
        return await self._lookup(identity, view_mode, snapshot, include_expired=False)

    async def get_including_expired(
        self, identity: Identity, view_mode: str, snapshot: FinancialSnapshot
    ) -> CachedSummary | None:
        """Freshest entry for the key regardless of expiry; last-resort fallback."""
        return await self._lookup(identity, view_mode, snapshot, include_expired=True)

    async def get_suggestions(
        self, identity: Identity, view_mode: str, snapshot: FinancialSnapshot
    ) -> CachedSummary | None:
        """Cached entry only when it carries suggestions."""
        cached = await self.get(identity, view_mode, snapshot)
        if cached is None or not cached.suggestions:
            return None
        return cached

    async def set(
        self,
        identity: Identity,
        view_mode: str,
        snapshot: FinancialSnapshot,
        summary_text: str,
        suggestions: list[Suggestion] | None = None,
        ttl_hours: int | None = None,
    ) -> bool:
        """Insert or refresh the entry for the key.

        Select-then-write is not atomic; two concurrent writers can both insert.
        Readers always take the newest row, so a duplicate is harmless.
        """
        if identity.is_anonymous:
            return False

        now = self._clock()
        expires_at = now + timedelta(hours=self.ttl_hours if ttl_hours is None else ttl_hours)
        payload = [s.model_dump(mode="json", by_alias=True) for s in suggestions or []]
        try:
            row = await self._find(identity, view_mode, snapshot, include_expired=True)
            if row is not None:
                row.summary_text = summary_text
                row.suggestions = payload
                row.suggestion_responses = {}
                row.created_at = now
                row.expires_at = expires_at
                await self._repo.save(row)
            else:
                await self._repo.add(
                    SummaryCacheRow(
                        user_id=identity.user_id,
                        demo_profile_id=identity.demo_profile_id,
                        view_mode=view_mode,
                        data_hash=hash_financial_data(snapshot),
                        summary_text=summary_text,
                        financial_data=_rounded_snapshot(snapshot),
                        suggestions=payload,
                        suggestion_responses={},
                        created_at=now,
                        expires_at=expires_at,
                    )
                )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Summary cache write failed for %s/%s: %s", identity.key, view_mode, exc)
            return False

        logger.info("Cached summary for %s/%s until %s", identity.key, view_mode, expires_at.isoformat())
        return True

    async def get_suggestion_response(
        self,
        identity: Identity,
        view_mode: str,
        snapshot: FinancialSnapshot,
        suggestion_id: str,
        decision: str,
    ) -> str | None:
        cached = await self.get(identity, view_mode, snapshot)
        if cached is None:
            return None
        return cached.suggestion_responses.get(suggestion_id, {}).get(decision)

    async def set_suggestion_response(
        self,
        identity: Identity,
        view_mode: str,
        snapshot: FinancialSnapshot,
        suggestion_id: str,
        decision: str,
        text: str,
    ) -> bool:
        """Attach a response to the cached entry; False when there is none."""
        if identity.is_anonymous:
            return False
        try:
            row = await self._find(identity, view_mode, snapshot, include_expired=False)
            if row is None:
                return False
            responses = {k: dict(v) for k, v in (row.suggestion_responses or {}).items()}
            responses.setdefault(suggestion_id, {})[decision] = text
            row.suggestion_responses = responses
            await self._repo.save(row)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Caching suggestion response failed for %s: %s", identity.key, exc)
            return False
        return True

    async def invalidate(self, identity: Identity) -> int:
        """Drop every cached entry for the identity."""
        if identity.is_anonymous:
            return 0
        try:
            deleted = await self._repo.delete_for_identity(identity.user_id, identity.demo_profile_id)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Summary cache invalidation failed for %s: %s", identity.key, exc)
            return 0
        logger.info("Invalidated %d cached summaries for %s", deleted, identity.key)
        return deleted
