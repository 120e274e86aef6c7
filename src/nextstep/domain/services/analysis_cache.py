"""
Per-user memo of the last skill-gap analysis and its validity.

State machine per user:

    (none)      --refresh ok-->                FRESH
    FRESH       --context, progress or TTL-->  STALE
    (none)      --context or progress-->       STALE (no payload yet)
    any         --invalidate()-->              INVALIDATED
    STALE       --refresh ok-->                FRESH
    INVALIDATED --refresh ok-->                FRESH

A failed refresh leaves the state untouched and serves the last FRESH
payload flagged as stale. With no payload at all the failure propagates.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from nextstep.core.config import Settings
from nextstep.core.errors import OracleUnavailableError
from nextstep.domain.models import SkillRequirement, UserContext, utcnow
from nextstep.domain.oracles import SkillGapOracle, call_oracle
from nextstep.libs.retry import retry_async
from nextstep.libs.singleflight import SingleFlight

logger = structlog.get_logger(__name__)


class CacheState(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    INVALIDATED = "invalidated"


@dataclass(slots=True)
class CacheEntry:
    state: CacheState
    requirements: list[SkillRequirement] | None = None
    refreshed_at: datetime | None = None
    analysis_cycle: int = 0
    stale_reason: str | None = None
    # Bumped on every staleness signal; a refresh that started under an older
    # version never marks the entry FRESH.
    version: int = 0
    # Version the stored payload was computed under
    payload_version: int = -1
    # skill (lower-cased) -> cycle in which it was first analysed or last completed
    last_touched: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class AnalysisResult:
    requirements: list[SkillRequirement]
    analysis_cycle: int
    refreshed_at: datetime | None
    stale: bool = False
    refreshed: bool = False
    error: str | None = None


class AnalysisCache:
    """Owns cache state for every user; mutated only through this class."""

    def __init__(
        self,
        oracle: SkillGapOracle,
        *,
        ttl_seconds: float = 3600,
        oracle_timeout_seconds: float = 20.0,
        oracle_max_attempts: int = 2,
        oracle_backoff_seconds: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.oracle = oracle
        self.ttl = timedelta(seconds=ttl_seconds)
        self.oracle_timeout_seconds = oracle_timeout_seconds
        self.oracle_max_attempts = oracle_max_attempts
        self.oracle_backoff_seconds = oracle_backoff_seconds
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._flights = SingleFlight("skill_gap_analysis")

    @classmethod
    def from_settings(
        cls,
        oracle: SkillGapOracle,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> AnalysisCache:
        return cls(
            oracle,
            ttl_seconds=settings.analysis_ttl_seconds,
            oracle_timeout_seconds=settings.oracle_timeout_seconds,
            oracle_max_attempts=settings.oracle_max_attempts,
            oracle_backoff_seconds=settings.oracle_backoff_seconds,
            clock=clock,
        )

    def state(self, user_id: str) -> CacheState | None:
        """Effective state, applying the TTL lazily."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.state is CacheState.FRESH and self._expired(entry):
            entry.state = CacheState.STALE
            entry.stale_reason = "ttl_expired"
            logger.info("analysis_cache_expired", user_id=user_id)
        return entry.state

    def analysis_cycle(self, user_id: str) -> int:
        entry = self._entries.get(user_id)
        return entry.analysis_cycle if entry else 0

    def untouched_cycles(self, user_id: str) -> dict[str, int]:
        """Cycles elapsed since each analysed skill was last worked on."""
        entry = self._entries.get(user_id)
        if entry is None:
            return {}
        return {
            skill: entry.analysis_cycle - cycle for skill, cycle in entry.last_touched.items()
        }

    def touch(self, user_id: str, skills: tuple[str, ...] | list[str]) -> None:
        """Record that the user just worked on ``skills``."""
        entry = self._entries.get(user_id)
        if entry is None:
            return
        for skill in skills:
            entry.last_touched[skill.strip().lower()] = entry.analysis_cycle

    def version(self, user_id: str) -> int:
        """Counter bumped by every staleness signal for the user."""
        entry = self._entries.get(user_id)
        return entry.version if entry else 0

    def mark_stale(self, user_id: str, reason: str) -> None:
        """FRESH -> STALE. INVALIDATED entries stay invalidated.

        A user without an analysis yet still gets an entry, so a first
        refresh already in flight is not stored as FRESH.
        """
        entry = self._entries.setdefault(user_id, CacheEntry(state=CacheState.STALE))
        entry.version += 1
        if entry.state is CacheState.FRESH:
            entry.state = CacheState.STALE
        entry.stale_reason = reason
        logger.info("analysis_cache_stale", user_id=user_id, reason=reason, state=entry.state)

    def invalidate(self, user_id: str) -> None:
        """Explicit reset. The last payload is kept only as a failure fallback."""
        entry = self._entries.setdefault(user_id, CacheEntry(state=CacheState.INVALIDATED))
        entry.version += 1
        entry.state = CacheState.INVALIDATED
        entry.stale_reason = "invalidated"
        logger.info("analysis_cache_invalidated", user_id=user_id)

    async def get_analysis(self, context: UserContext) -> AnalysisResult:
        """Serve the FRESH payload or refresh it through the oracle."""
        user_id = context.user_id
        if self.state(user_id) is CacheState.FRESH:
            entry = self._entries[user_id]
            return AnalysisResult(
                requirements=list(entry.requirements or []),
                analysis_cycle=entry.analysis_cycle,
                refreshed_at=entry.refreshed_at,
            )
        # Callers only share a refresh started under the same version
        started_version = self.version(user_id)
        return await self._flights.do(
            (user_id, started_version), lambda: self._refresh(context, started_version)
        )

    async def _refresh(self, context: UserContext, started_version: int) -> AnalysisResult:
        user_id = context.user_id
        try:
            requirements = await retry_async(
                lambda: call_oracle(
                    self.oracle.infer(context),
                    timeout=self.oracle_timeout_seconds,
                    oracle="skill_gap_oracle",
                ),
                attempts=self.oracle_max_attempts,
                backoff_seconds=self.oracle_backoff_seconds,
                retry_on=(OracleUnavailableError,),
                event="skill_gap_oracle",
                user_id=user_id,
            )
        except OracleUnavailableError as exc:
            entry = self._entries.get(user_id)
            if entry is None or entry.requirements is None:
                raise OracleUnavailableError(
                    "skill-gap analysis is unavailable and no earlier analysis exists; "
                    "retry later",
                    "skill_gap_oracle",
                ) from exc
            await logger.awarning(
                "analysis_cache_serving_stale",
                user_id=user_id,
                state=entry.state,
                error=str(exc),
            )
            return AnalysisResult(
                requirements=list(entry.requirements),
                analysis_cycle=entry.analysis_cycle,
                refreshed_at=entry.refreshed_at,
                stale=True,
                error=str(exc),
            )

        entry = self._entries.setdefault(user_id, CacheEntry(state=CacheState.STALE))
        if entry.payload_version > started_version:
            # A refresh started after this one already stored its payload
            await logger.ainfo(
                "analysis_cache_refresh_superseded",
                user_id=user_id,
                started_version=started_version,
                payload_version=entry.payload_version,
            )
            return AnalysisResult(
                requirements=list(requirements),
                analysis_cycle=entry.analysis_cycle,
                refreshed_at=entry.refreshed_at,
                stale=True,
                refreshed=True,
            )

        entry.requirements = list(requirements)
        entry.payload_version = started_version
        entry.refreshed_at = self.clock()
        entry.analysis_cycle += 1
        for requirement in requirements:
            entry.last_touched.setdefault(
                requirement.skill_name.strip().lower(), entry.analysis_cycle
            )
        if entry.version == started_version:
            entry.state = CacheState.FRESH
            entry.stale_reason = None
        else:
            entry.state = CacheState.STALE

        await logger.ainfo(
            "analysis_cache_refreshed",
            user_id=user_id,
            analysis_cycle=entry.analysis_cycle,
            requirement_count=len(requirements),
            state=entry.state,
        )
        return AnalysisResult(
            requirements=list(requirements),
            analysis_cycle=entry.analysis_cycle,
            refreshed_at=entry.refreshed_at,
            refreshed=True,
        )

    def _expired(self, entry: CacheEntry) -> bool:
        return entry.refreshed_at is not None and self.clock() - entry.refreshed_at >= self.ttl
