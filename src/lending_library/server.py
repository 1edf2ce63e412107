"""Lending Library MCP server.

Registers the lending tools with FastMCP and serves them over stdio. The
database (tables and unique keys) is initialised before the first request.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from lending_library.config import get_config
from lending_library.errors import LibraryError
from lending_library.services.lending_library import get_library
from lending_library.tools import all_tools

# stdout carries the stdio transport, so logs go to stderr
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Lending library backend. Use add_book to catalogue copies, find_books to search "
        "titles and authors, checkout_book and return_book to lend copies to patrons."
    ),
)

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    mcp.tool(
        name=tool["name"],
        description=tool["description"],
    )(tool["handler"])

logger.info("Registered %d tools", len(all_tools))


def configure_logging() -> None:
    """Apply the configured log level."""
    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)


def run_stdio_server() -> None:
    """Run the server on the stdio transport."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    mcp.run(transport="stdio")


def main() -> None:
    """Entry point for ``lending-library``."""
    configure_logging()
    try:
        logger.info("Lending Library %s (transport: %s)", config.server_version, config.transport)
        # creates tables and unique keys up front
        get_library()
        run_stdio_server()
    except LibraryError as e:
        logger.error("Failed to start: %s", e.message)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    main()
