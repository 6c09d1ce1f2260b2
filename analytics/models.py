"""
Daxue Reader - Analytics Data Model

On-disk layout (analytics.json):

    {
      "summary": {"totalUniqueUsers": 0, "totalAiUsage": 0, "totalPageViews": 0},
      "users": {
        "<userId>": {
          "firstVisit": <epoch ms>, "lastVisit": <epoch ms>,
          "pageViews": 0, "aiUsage": 0,
          "visits": [{"timestamp": <epoch ms>, "type": "page"|"ai", "chapter": str|null}]
        }
      }
    }
"""

import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import config

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


class VisitType(Enum):
    PAGE = "page"
    AI = "ai"


@dataclass(frozen=True)
class ClientIdentity:
    """
    Anonymous client identifier.

    Generated once by the calling shell and passed into every tracking
    call; the store never reads identity from ambient state.
    """
    user_id: str

    def __post_init__(self):
        if not isinstance(self.user_id, str) or not self.user_id:
            raise ValueError("user_id must be a non-empty string")

    @classmethod
    def generate(cls) -> "ClientIdentity":
        """Make a new identifier: u_<base36 millis>_<9 random base36 chars>."""
        suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
        return cls(user_id=f"u_{to_base36(now_ms())}_{suffix}")

    @property
    def display_id(self) -> str:
        """Shortened identifier with an ellipsis, for dashboards."""
        return self.user_id[:config.ANALYTICS_USER_ID_DISPLAY_CHARS] + "..."

    def __str__(self) -> str:
        return self.user_id


@dataclass
class VisitEvent:
    timestamp: int
    type: VisitType
    chapter: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "type": self.type.value, "chapter": self.chapter}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitEvent":
        return cls(
            timestamp=int(data["timestamp"]),
            type=VisitType(data["type"]),
            chapter=data.get("chapter"),
        )


@dataclass
class UserRecord:
    first_visit: int
    last_visit: int
    page_views: int = 0
    ai_usage: int = 0
    visits: List[VisitEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "firstVisit": self.first_visit,
            "lastVisit": self.last_visit,
            "pageViews": self.page_views,
            "aiUsage": self.ai_usage,
            "visits": [visit.to_dict() for visit in self.visits],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserRecord":
        return cls(
            first_visit=int(data["firstVisit"]),
            last_visit=int(data["lastVisit"]),
            page_views=int(data.get("pageViews", 0)),
            ai_usage=int(data.get("aiUsage", 0)),
            visits=[VisitEvent.from_dict(v) for v in data.get("visits", [])],
        )


@dataclass
class AnalyticsSummary:
    total_unique_users: int = 0
    total_ai_usage: int = 0
    total_page_views: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalUniqueUsers": self.total_unique_users,
            "totalAiUsage": self.total_ai_usage,
            "totalPageViews": self.total_page_views,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyticsSummary":
        return cls(
            total_unique_users=int(data.get("totalUniqueUsers", 0)),
            total_ai_usage=int(data.get("totalAiUsage", 0)),
            total_page_views=int(data.get("totalPageViews", 0)),
        )


@dataclass
class AnalyticsDocument:
    """The whole persisted analytics state."""
    summary: AnalyticsSummary = field(default_factory=AnalyticsSummary)
    users: Dict[str, UserRecord] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "users": {user_id: user.to_dict() for user_id, user in self.users.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AnalyticsDocument":
        """
        Raises:
            ValueError: If the data does not have the document shape
        """
        if not isinstance(data, dict) or not isinstance(data.get("summary"), dict) \
                or not isinstance(data.get("users"), dict):
            raise ValueError("Analytics document must hold 'summary' and 'users' objects")
        try:
            return cls(
                summary=AnalyticsSummary.from_dict(data["summary"]),
                users={str(k): UserRecord.from_dict(v) for k, v in data["users"].items() if k},
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed analytics document: {e}") from e
