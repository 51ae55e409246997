"""CLI entry point for helium-server.

This module provides the command-line interface for starting helium-server.
It can be invoked as `helium-server` (via the script entry point) or
`python -m helium_server`.
"""

import argparse
import sys

import uvicorn

from helium_server import __version__, create_app
from helium_server.config import HeliumServerSettings
from helium_server.inference.types import ModelProvider
from helium_server.log_config import setup_logging


def main() -> None:
    """Main entry point for the helium-server CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="helium-server",
        description="Headless FastAPI server for tool-calling LLM inference",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"helium-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via HELIUM_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via HELIUM_PORT)",
    )

    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        choices=[p.value for p in ModelProvider],
        help="Default inference provider (default: ollama, can be set via HELIUM_DEFAULT_PROVIDER)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via HELIUM_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--openai-endpoint",
        type=str,
        default=None,
        help="OpenAI-compatible server URL (can be set via HELIUM_OPENAI_COMPATIBLE_ENDPOINT)",
    )

    parser.add_argument(
        "--allow-dir",
        action="append",
        default=None,
        dest="allowed_directories",
        help="Directory the file-system tools may access (repeatable, default: .)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via HELIUM_LOG_LEVEL)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (same as HELIUM_DEBUG_LOGGING=true)",
    )

    args = parser.parse_args()

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.provider is not None:
        settings_kwargs["default_provider"] = ModelProvider(args.provider)
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.openai_endpoint is not None:
        settings_kwargs["openai_compatible_endpoint"] = args.openai_endpoint
    if args.allowed_directories:
        settings_kwargs["allowed_directories"] = args.allowed_directories
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level
    if args.debug:
        settings_kwargs["debug_logging"] = True

    settings = HeliumServerSettings(**settings_kwargs)
    setup_logging(settings.effective_log_level)

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
