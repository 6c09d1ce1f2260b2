"""
Daxue Reader - Gemini Proxy Client
Forwards caller-shaped generateContent requests to the Gemini API.

The proxy owns the credential and model name; callers never see either.
It does not retry, reshape, or time out: the upstream status and body are
relayed as they arrive.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from config import ReaderConfig
from core.errors import ConfigurationError
from core.logger import log_debug, log_error, log_warning

MISSING_KEY_MESSAGE = "API key not configured"


@dataclass
class ProxyResponse:
    """Upstream status and JSON body, relayed verbatim."""
    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class GeminiProxy:
    """
    Pass-through client for the Gemini generateContent endpoint.

    The API key travels in the x-goog-api-key header rather than the
    query string so it never appears in URLs or exception messages.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta/models",
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the proxy.

        Args:
            api_key: Server-held Gemini API key (may be empty)
            model: Model identifier, e.g. gemini-3-flash-preview
            api_base: Base URL of the models collection
            session: Optional requests session (injected in tests)
        """
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, reader_config: ReaderConfig) -> "GeminiProxy":
        return cls(
            api_key=reader_config.api_key,
            model=reader_config.model,
            api_base=reader_config.api_base,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/{self.model}:generateContent"

    def check_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no API key is configured
        """
        if not self.is_configured:
            raise ConfigurationError(MISSING_KEY_MESSAGE, status_code=500)

    def forward(self, payload: Dict[str, Any]) -> ProxyResponse:
        """
        Forward a generation request upstream.

        Args:
            payload: Request body already shaped for generateContent

        Returns:
            ProxyResponse carrying the upstream status and body. A missing
            key yields a 500 response without any network call.

        Raises:
            requests.RequestException: On connection-level failure
        """
        try:
            self.check_configured()
        except ConfigurationError as e:
            log_warning(f"Interpret request rejected: {e.message}")
            return ProxyResponse(status_code=500, body={"error": e.message})

        log_debug(f"Forwarding generation request to {self.model}")
        response = self._session.post(
            self.endpoint,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
        )

        try:
            body = response.json()
        except ValueError:
            log_error(f"Upstream returned non-JSON body (HTTP {response.status_code})")
            body = {"error": {"message": response.text or f"HTTP {response.status_code}"}}

        if response.status_code >= 400:
            log_warning(f"Upstream generation error: HTTP {response.status_code}")

        return ProxyResponse(status_code=response.status_code, body=body)
