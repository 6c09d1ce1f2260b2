"""
Daxue Reader - Analytics Store
Page-view and AI-usage counters keyed by anonymous client identifier.

Every tracking call is a full load - mutate - save cycle against the
backend; nothing is cached between calls. There is no locking: two
concurrent tracking calls can interleave and the later save wins, so
under concurrent load the totals can fall below the true event count.
Tracking always reports success; storage failures are logged only.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional, Union

import config
from analytics.backends import AnalyticsBackend
from analytics.models import (
    AnalyticsDocument,
    ClientIdentity,
    UserRecord,
    VisitEvent,
    VisitType,
    now_ms,
)
from core.errors import AnalyticsStorageError
from core.logger import log_error, log_warning


def format_timestamp(timestamp_ms: int) -> str:
    """Epoch milliseconds -> ISO-8601 UTC with millisecond precision and a Z suffix."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def round_rate(value: float) -> float:
    """Round to two decimals, half away from zero on the exact binary value."""
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class AnalyticsStore:
    """
    File-backed analytics with an injected persistence backend.

    Public interface: record_page_view, record_ai_usage, compute_summary,
    plus load/save for whole-document access.
    """

    def __init__(
        self,
        backend: AnalyticsBackend,
        clock: Callable[[], int] = now_ms,
        max_visits: int = config.ANALYTICS_MAX_VISITS_PER_USER
    ):
        """
        Args:
            backend: Where the document is stored
            clock: Returns the current time in epoch milliseconds
            max_visits: Per-user visit log cap (oldest dropped first)
        """
        self.backend = backend
        self.clock = clock
        self.max_visits = max_visits

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def load(self) -> AnalyticsDocument:
        """Load the document; a missing or unreadable store yields an empty one."""
        try:
            data = self.backend.read()
        except AnalyticsStorageError as e:
            log_error(f"Error loading analytics: {e.message}")
            return AnalyticsDocument()

        if data is None:
            return AnalyticsDocument()

        try:
            return AnalyticsDocument.from_dict(data)
        except ValueError as e:
            log_error(f"Error loading analytics: {e}")
            return AnalyticsDocument()

    def save(self, document: AnalyticsDocument) -> bool:
        """Persist the document. Returns False (after logging) on failure."""
        try:
            self.backend.write(document.to_dict())
            return True
        except AnalyticsStorageError as e:
            log_error(f"Error saving analytics: {e.message}")
            return False

    # =========================================================================
    # TRACKING
    # =========================================================================

    def record_page_view(
        self,
        identity: Union[ClientIdentity, str],
        chapter: Optional[str] = None
    ) -> Dict[str, bool]:
        """Record a page (or chapter) view."""
        return self._record(identity, VisitType.PAGE, chapter)

    def record_ai_usage(
        self,
        identity: Union[ClientIdentity, str],
        chapter: Optional[str] = None
    ) -> Dict[str, bool]:
        """Record one interpretation request."""
        return self._record(identity, VisitType.AI, chapter)

    def _record(
        self,
        identity: Union[ClientIdentity, str],
        visit_type: VisitType,
        chapter: Optional[str]
    ) -> Dict[str, bool]:
        if isinstance(identity, str):
            try:
                identity = ClientIdentity(identity)
            except ValueError as e:
                log_warning(f"Analytics {visit_type.value} not recorded: {e}")
                return {"success": True}

        document = self.load()
        now = self.clock()

        user = document.users.get(identity.user_id)
        if user is None:
            user = UserRecord(first_visit=now, last_visit=now)
            document.users[identity.user_id] = user
            document.summary.total_unique_users += 1

        user.last_visit = now
        if visit_type is VisitType.PAGE:
            user.page_views += 1
            document.summary.total_page_views += 1
        else:
            user.ai_usage += 1
            document.summary.total_ai_usage += 1

        user.visits.append(VisitEvent(timestamp=now, type=visit_type, chapter=chapter))
        if len(user.visits) > self.max_visits:
            user.visits = user.visits[-self.max_visits:]

        self.save(document)
        return {"success": True}

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    def compute_summary(self, now: Optional[int] = None) -> Dict[str, Any]:
        """
        Derive activity figures without touching the stored document.

        Args:
            now: Reference time in epoch ms (defaults to the store clock)

        Returns:
            {"overview": {...}, "users": [...], "generatedAt": iso}
        """
        document = self.load()
        if now is None:
            now = self.clock()
        one_day_ago = now - config.ANALYTICS_DAY_MS
        one_week_ago = now - config.ANALYTICS_WEEK_MS

        overview = {
            "totalUniqueUsers": document.summary.total_unique_users,
            "totalPageViews": document.summary.total_page_views,
            "totalAiUsage": document.summary.total_ai_usage,
            "dailyActiveUsers": 0,
            "weeklyActiveUsers": 0,
            "dailyPageViews": 0,
            "dailyAiUsage": 0,
            "weeklyPageViews": 0,
            "weeklyAiUsage": 0,
        }

        ranked = []
        for user_id, user in document.users.items():
            if user.last_visit >= one_day_ago:
                overview["dailyActiveUsers"] += 1
            if user.last_visit >= one_week_ago:
                overview["weeklyActiveUsers"] += 1

            for visit in user.visits:
                kind = "PageViews" if visit.type is VisitType.PAGE else "AiUsage"
                if visit.timestamp >= one_day_ago:
                    overview[f"daily{kind}"] += 1
                if visit.timestamp >= one_week_ago:
                    overview[f"weekly{kind}"] += 1

            days_since_first = max(1.0, (now - user.first_visit) / config.ANALYTICS_DAY_MS)
            ranked.append((user.last_visit, {
                "userId": ClientIdentity(user_id).display_id,
                "firstVisit": format_timestamp(user.first_visit),
                "lastVisit": format_timestamp(user.last_visit),
                "totalPageViews": user.page_views,
                "totalAiUsage": user.ai_usage,
                "pageViewsPerDay": round_rate(user.page_views / days_since_first),
                "aiUsagePerDay": round_rate(user.ai_usage / days_since_first),
            }))

        ranked.sort(key=lambda item: item[0], reverse=True)
        users: List[Dict[str, Any]] = [stats for _, stats in ranked]

        return {
            "overview": overview,
            "users": users,
            "generatedAt": format_timestamp(now),
        }

