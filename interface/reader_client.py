"""
Daxue Reader - Reader Client
The calling shell that talks to the reader server.

Provides:
- LocalState: client-local storage (identity, onboarding flag)
- ReaderClient: tracking calls and interpretation requests over HTTP
- ReaderSession: current chapter/paragraph plus the one-at-a-time busy flag
"""

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from analytics.models import ClientIdentity
from core.content_loader import Chapter, PassageRecord, clean_content, find_chapter
from core.errors import ErrorKind, InterpretationError
from core.logger import log_debug, log_error, log_warning
from core.response_parser import InterpretationResult, parse_interpretation
from llm.interpretation import (
    build_generation_request,
    extract_error_message,
    extract_response_text,
)

USER_ID_KEY = "liandjd_user_id"
AI_BUTTON_CLICKED_KEY = "liandjd_ai_btn_clicked"


class LocalState:
    """
    Small JSON key-value file standing in for browser local storage.

    Holds the anonymous identity and whether the AI button's attention
    animation has been dismissed.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        try:
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._data = data
        except json.JSONDecodeError as e:
            log_warning(f"Invalid local state file, starting fresh: {e}")
        except OSError as e:
            log_error(f"Failed to load local state: {e}")

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            log_error(f"Failed to save local state: {e}")

    def load_or_create_identity(self) -> ClientIdentity:
        """Return the cached identity, generating and caching one on first use."""
        user_id = self._data.get(USER_ID_KEY)
        if isinstance(user_id, str) and user_id:
            return ClientIdentity(user_id)

        identity = ClientIdentity.generate()
        self._data[USER_ID_KEY] = identity.user_id
        self._save()
        return identity

    @property
    def ai_button_clicked(self) -> bool:
        return bool(self._data.get(AI_BUTTON_CLICKED_KEY))

    def mark_ai_button_clicked(self) -> None:
        if not self.ai_button_clicked:
            self._data[AI_BUTTON_CLICKED_KEY] = True
            self._save()


class ReaderClient:
    """
    HTTP client for the reader server.

    Tracking is best-effort: any failure is logged at debug level and
    dropped so it can never interrupt reading.
    """

    def __init__(
        self,
        base_url: str,
        identity: ClientIdentity,
        session: Optional[requests.Session] = None,
        tracking_timeout: float = 5.0
    ):
        self.base_url = base_url.rstrip("/")
        self.identity = identity
        self._session = session or requests.Session()
        self.tracking_timeout = tracking_timeout

    def _track(self, endpoint: str, chapter: Optional[str]) -> None:
        try:
            self._session.post(
                f"{self.base_url}/api/analytics/{endpoint}",
                json={"userId": self.identity.user_id, "chapter": chapter},
                timeout=self.tracking_timeout,
            )
        except Exception as e:
            log_debug(f"Analytics {endpoint} error: {e}")

    def track_page_view(self, chapter: Optional[str] = None) -> None:
        """Report a page or chapter view."""
        self._track("pageview", chapter)

    def track_ai_usage(self, chapter: Optional[str] = None) -> None:
        """Report one interpretation request."""
        self._track("ai", chapter)

    def interpret(self, paragraph: PassageRecord) -> InterpretationResult:
        """
        Request and parse an interpretation for one paragraph.

        Raises:
            InterpretationError: On network failure, upstream error or a
                response without generated text
        """
        payload = build_generation_request(clean_content(paragraph.content))

        try:
            response = self._session.post(f"{self.base_url}/api/interpret", json=payload)
        except requests.RequestException as e:
            raise InterpretationError(str(e), kind=ErrorKind.NETWORK) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            raise InterpretationError(extract_error_message(body), status_code=response.status_code)

        return parse_interpretation(extract_response_text(body))


@dataclass
class InterpretationOutcome:
    """Result of one interpretation attempt, success or failure."""
    paragraph: PassageRecord
    result: Optional[InterpretationResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReaderSession:
    """
    Reading state for one client.

    At most one interpretation runs at a time; a request made while one
    is in flight returns None without doing anything.
    """

    def __init__(self, chapters: List[Chapter], client: ReaderClient):
        self.chapters = chapters
        self.client = client
        self.current_chapter: Optional[Chapter] = None
        self.current_paragraph: Optional[PassageRecord] = None
        self._busy_lock = threading.Lock()
        self.is_loading = False

    def open_intro(self) -> None:
        """Return to the book introduction."""
        self.current_chapter = None
        self.current_paragraph = None

    def select_chapter(self, key: str) -> Optional[Chapter]:
        """Switch to a chapter and report the view. Unknown keys are ignored."""
        chapter = find_chapter(self.chapters, key)
        if chapter is None:
            return None

        self.current_chapter = chapter
        self.current_paragraph = None
        self.client.track_page_view(chapter.name)
        return chapter

    def select_paragraph(self, paragraph_id: int) -> Optional[InterpretationOutcome]:
        """Select a paragraph in the current chapter and interpret it."""
        if self.current_chapter is None:
            return None
        paragraph = self.current_chapter.get_paragraph(paragraph_id)
        if paragraph is None:
            return None

        self.current_paragraph = paragraph
        return self.request_interpretation(paragraph)

    def retry(self) -> Optional[InterpretationOutcome]:
        """Re-issue the request for the currently selected paragraph."""
        if self.current_paragraph is None:
            return None
        return self.request_interpretation(self.current_paragraph)

    def request_interpretation(self, paragraph: PassageRecord) -> Optional[InterpretationOutcome]:
        """
        Interpret a paragraph unless another request is already running.

        Returns:
            InterpretationOutcome, or None when busy
        """
        with self._busy_lock:
            if self.is_loading:
                return None
            self.is_loading = True

        try:
            chapter_name = self.current_chapter.name if self.current_chapter else None
            self.client.track_ai_usage(chapter_name)
            result = self.client.interpret(paragraph)
            return InterpretationOutcome(paragraph=paragraph, result=result)
        except InterpretationError as e:
            log_error(f"AI Error ({e.kind.value}): {e.message}")
            return InterpretationOutcome(paragraph=paragraph, error=e.message or "请求失败，请稍后重试")
        finally:
            self.is_loading = False
