#!/usr/bin/env python3
"""
Daxue Reader - Main Entry Point
Reading companion for 《大学》 with AI interpretation and usage analytics

Usage:
    python main.py                 # Run the HTTP server (default)
    python main.py serve           # Same, explicitly
    python main.py read            # Terminal reader against a running server
    python main.py read --server http://127.0.0.1:8080
"""

import argparse
from dataclasses import replace
import signal
import sys
import threading
from pathlib import Path

# Ensure we can import from project root
sys.path.insert(0, str(Path(__file__).parent))

import config
from config import ReaderConfig
from core.logger import (
    setup_logging,
    log_startup_banner,
    log_section,
    log_subsection,
    log_success,
    log_warning,
    log_error,
    log_ready,
)


# Global shutdown event
_shutdown_event = threading.Event()


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    print()  # New line after ^C
    log_warning("Shutdown signal received...")
    _shutdown_event.set()


def initialize_logging(log_to_console: bool = True) -> None:
    """Set up console and file logging."""
    config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    setup_logging(
        log_file_path=config.DIAGNOSTIC_LOG_PATH,
        level=config.LOG_LEVEL,
        log_to_file=config.LOG_TO_FILE,
        log_to_console=log_to_console
    )


def print_configuration(reader_config: ReaderConfig) -> None:
    """Print configuration summary."""
    base_url = f"http://localhost:{reader_config.port}"
    log_section("Configuration", "📡")
    log_subsection(f"地址: {base_url}")
    log_subsection(f"数据面板: {base_url}/api/analytics/dashboard")
    log_subsection(f"API Key: {'已配置 ✓' if reader_config.has_api_key else '未配置 ✗'}")
    log_subsection(f"模型: {reader_config.model}")
    log_subsection(f"Static Dir: {reader_config.static_dir}")
    log_subsection(f"Analytics File: {reader_config.analytics_path}")
    log_subsection(f"Diagnostic Log: {config.DIAGNOSTIC_LOG_PATH}")


def run_server(reader_config: ReaderConfig) -> int:
    """Run the HTTP server until a shutdown signal arrives."""
    from interface.http_api import init_http_server

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        initialize_logging()
        log_startup_banner(config.VERSION, config.PROJECT_NAME)
        print_configuration(reader_config)

        if not reader_config.has_api_key:
            log_warning("GEMINI_API_KEY is not set - /api/interpret will return errors")

        http_server = init_http_server(reader_config)
        http_server.start()
        log_ready()

        while not _shutdown_event.is_set():
            if not http_server.is_running:
                log_error("HTTP server thread exited unexpectedly")
                return 1
            _shutdown_event.wait(timeout=1.0)

        log_success(f"{config.PROJECT_NAME} shutdown complete")
        return 0

    except Exception as e:
        log_error(f"Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


def run_reader(server_url: str, content_path: Path) -> int:
    """Run the terminal reader against a running server."""
    from core.content_loader import load_chapters
    from interface.cli import ReaderCLI
    from interface.reader_client import LocalState, ReaderClient, ReaderSession

    initialize_logging(log_to_console=False)

    try:
        chapters = load_chapters(content_path)
    except (OSError, ValueError) as e:
        log_error(f"Cannot load passages from {content_path}: {e}")
        print(f"Cannot load passages from {content_path}: {e}")
        return 1

    local_state = LocalState(config.LOCAL_STATE_PATH)
    client = ReaderClient(server_url, local_state.load_or_create_identity())
    cli = ReaderCLI(ReaderSession(chapters, client), local_state=local_state)
    cli.start()
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description=f"{config.PROJECT_NAME} - reading companion for 《大学》"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load settings from this .env file instead of the default"
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server (default)")
    serve_parser.add_argument("--port", type=int, default=None, help="Override HTTP_PORT")

    read_parser = subparsers.add_parser("read", help="Terminal reader")
    read_parser.add_argument("--server", default=config.READER_SERVER_URL, help="Reader server URL")
    read_parser.add_argument("--content", type=Path, default=config.CONTENT_PATH, help="Passage dataset (data.json)")

    args = parser.parse_args()

    # Read once; never re-read mid-process
    reader_config = ReaderConfig.from_env(args.env_file)

    if args.command == "read":
        return run_reader(args.server, args.content)

    if getattr(args, "port", None):
        reader_config = replace(reader_config, port=args.port)
    return run_server(reader_config)


if __name__ == "__main__":
    sys.exit(main())
