"""
Daxue Reader - Configuration
Paths, constants, and the typed runtime configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# =============================================================================
# PATHS
# =============================================================================
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"
STATIC_DIR = Path(os.getenv("STATIC_DIR", str(PROJECT_ROOT / "static")))
ANALYTICS_PATH = Path(os.getenv("ANALYTICS_PATH", str(DATA_DIR / "analytics.json")))
CONTENT_PATH = STATIC_DIR / "data.json"
DIAGNOSTIC_LOG_PATH = LOGS_DIR / "diagnostic.log"
LOCAL_STATE_PATH = DATA_DIR / "local_state.json"  # Terminal reader's stand-in for browser storage

# =============================================================================
# VERSION
# =============================================================================
VERSION = "0.1.0"
PROJECT_NAME = "阿莲读经典"

# =============================================================================
# LLM CONFIGURATION
# =============================================================================
# Gemini (Google Generative Language API)
# Credential and model are read by ReaderConfig.from_env(), never from here
DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

# Generation settings sent by the reader with every interpretation request
INTERPRET_TEMPERATURE = 0.7
INTERPRET_MAX_OUTPUT_TOKENS = 2048

# =============================================================================
# ANALYTICS CONFIGURATION
# =============================================================================
ANALYTICS_MAX_VISITS_PER_USER = 100   # Older visit events are dropped first
ANALYTICS_DAY_MS = 24 * 60 * 60 * 1000
ANALYTICS_WEEK_MS = 7 * ANALYTICS_DAY_MS
ANALYTICS_USER_ID_DISPLAY_CHARS = 8

# Never served over HTTP, matched as substrings of the request path
PROTECTED_FILE_NAMES = (".env", "analytics.json")

# =============================================================================
# HTTP API CONFIGURATION
# =============================================================================
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("HTTP_PORT", "8080"))
READER_SERVER_URL = os.getenv("READER_SERVER_URL", f"http://127.0.0.1:{HTTP_PORT}")

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE = True


@dataclass(frozen=True)
class ReaderConfig:
    """
    Runtime configuration, populated once at process entry.

    Components receive this object instead of reading the environment,
    so the credential and model never change mid-process.
    """
    api_key: str = ""
    model: str = DEFAULT_GEMINI_MODEL
    api_base: str = GEMINI_API_BASE
    analytics_path: Path = ANALYTICS_PATH
    static_dir: Path = STATIC_DIR
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "ReaderConfig":
        """
        Build the configuration from the environment.

        Args:
            env_file: Optional .env file to load before reading variables

        Returns:
            Populated ReaderConfig
        """
        if env_file is not None:
            load_dotenv(env_file, override=True)

        return cls(
            api_key=os.getenv("GEMINI_API_KEY", ""),
            model=os.getenv("GEMINI_MODEL", "") or DEFAULT_GEMINI_MODEL,
            analytics_path=Path(os.getenv("ANALYTICS_PATH", str(ANALYTICS_PATH))),
            static_dir=Path(os.getenv("STATIC_DIR", str(STATIC_DIR))),
            host=os.getenv("HTTP_HOST", HTTP_HOST),
            port=int(os.getenv("HTTP_PORT", str(HTTP_PORT))),
        )
