"""CLI entry point for mcp-relay.

This module provides the command-line interface for starting the server.
It can be invoked as `mcp-relay` (via the script entry point) or
`python -m mcp_relay`.
"""

import argparse
import sys

import uvicorn

from mcp_relay import __version__, create_app
from mcp_relay.config import RelaySettings


def main() -> None:
    """Main entry point for the mcp-relay CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="mcp-relay",
        description="Chat server delegating tool use to MCP providers via Ollama",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mcp-relay {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via MCP_RELAY_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via MCP_RELAY_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via MCP_RELAY_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Ollama model used for chat (can be set via MCP_RELAY_MODEL)",
    )

    parser.add_argument(
        "--max-tool-iterations",
        type=int,
        default=None,
        help="Cap on model/tool round-trips per message (default: 5)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for provider configs and media (default: ., can be set via MCP_RELAY_DATA_DIR)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via MCP_RELAY_LOG_LEVEL)",
    )

    args = parser.parse_args()

    # CLI args override environment variables
    overrides = {
        "host": args.host,
        "port": args.port,
        "ollama_host": args.ollama_host,
        "model": args.model,
        "max_tool_iterations": args.max_tool_iterations,
        "data_dir": args.data_dir,
        "log_level": args.log_level,
    }
    settings = RelaySettings(**{k: v for k, v in overrides.items() if v is not None})

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
