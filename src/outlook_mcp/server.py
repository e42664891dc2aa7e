import os
import sys
import signal
import atexit
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv
from importlib.metadata import version, PackageNotFoundError

# Logger will be initialized after argument parsing
logger: logging.Logger | None = None

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


def _parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Outlook MCP Server - calendar and mail tools over Microsoft Graph"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to .env file (default: .env)",
    )
    return parser.parse_args(argv)


def _setup_signal_handlers() -> None:
    """Setup graceful shutdown handlers."""

    def signal_handler(signum, frame):
        sig_name = signal.Signals(signum).name
        assert logger is not None
        logger.warning(
            f"Received signal {sig_name} ({signum}), shutting down gracefully"
        )
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def _log_startup_info() -> None:
    """Log server startup information."""
    assert logger is not None
    try:
        pkg_version = version("outlook-mcp")
    except PackageNotFoundError:
        pkg_version = "dev"

    logger.info("=" * 80)
    logger.info(f"Outlook MCP Server Starting v{pkg_version}")
    logger.info("=" * 80)
    logger.info(f"PID: {os.getpid()}")
    logger.info(f"Python: {sys.version}")
    logger.info(f"Working Directory: {os.getcwd()}")
    logger.info("Environment Variables:")
    for key in [
        "OUTLOOK_MCP_CLIENT_ID",
        "OUTLOOK_MCP_TENANT_ID",
        "MCP_TRANSPORT",
        "MCP_HOST",
        "MCP_PORT",
    ]:
        value = os.getenv(key, "not set")
        # Mask sensitive values
        if "CLIENT_ID" in key and value != "not set":
            value = f"{value[:8]}...{value[-4:]}"
        logger.info(f"  {key}: {value}")
    logger.info("=" * 80)


def is_loopback(host: str) -> bool:
    return host in LOOPBACK_HOSTS


def main(argv: list[str] | None = None) -> None:
    # Parse arguments first to get env file path
    args = _parse_arguments(argv)

    env_file = args.env_file
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)
        print(f"Loaded environment from: {env_file}", file=sys.stderr)
    else:
        print(f"Warning: Environment file not found: {env_file}", file=sys.stderr)
        print("Continuing with system environment variables...", file=sys.stderr)

    # Import local modules after loading environment so config sees .env values
    from .tools import mcp
    from .logging_config import setup_logging, get_logger

    global logger
    logger = get_logger(__name__)

    log_level = os.getenv("MCP_LOG_LEVEL", "INFO")
    log_dir = os.getenv("MCP_LOG_DIR", "logs")
    setup_logging(log_dir=log_dir, log_level=log_level)

    _setup_signal_handlers()

    def _cleanup():
        assert logger is not None
        logger.info("Server shutting down")

    atexit.register(_cleanup)

    _log_startup_info()

    if not os.getenv("OUTLOOK_MCP_CLIENT_ID"):
        # Tools still load; authenticate reports the missing client id
        logger.warning(
            "OUTLOOK_MCP_CLIENT_ID is not set; authentication will fail until it is"
        )

    transport = os.getenv("MCP_TRANSPORT", "stdio").lower()
    logger.info(f"Transport mode: {transport}")

    if transport == "http":
        host = os.getenv("MCP_HOST", "127.0.0.1")
        port = int(os.getenv("MCP_PORT", "8000"))
        path = os.getenv("MCP_PATH", "/mcp")

        # The HTTP endpoint has no client authentication of its own
        if not is_loopback(host) and os.getenv("MCP_ALLOW_INSECURE") != "true":
            logger.error(
                f"Refusing to bind HTTP transport to {host} without MCP_ALLOW_INSECURE=true"
            )
            print(
                f"Error: Refusing to expose the server on {host}. "
                "Set MCP_ALLOW_INSECURE=true to override",
                file=sys.stderr,
            )
            sys.exit(1)

        if not is_loopback(host):
            logger.warning(
                f"Binding to non-loopback interface ({host}) - ensure firewall is configured!"
            )
            print(
                "⚠️  WARNING: Anyone who can reach this server can use your Outlook account!",
                file=sys.stderr,
            )

        logger.info(f"Starting HTTP transport on {host}:{port}{path}")
        print(
            f"Starting MCP server with Streamable HTTP transport on {host}:{port}{path}",
            file=sys.stderr,
        )
        try:
            mcp.run(transport="http", host=host, port=port, path=path)
        except Exception as e:
            logger.critical(f"Failed to start HTTP server: {e}", exc_info=True)
            raise

    elif transport == "stdio":
        logger.info("Starting stdio transport")
        try:
            mcp.run()
        except Exception as e:
            logger.critical(f"Failed to start stdio server: {e}", exc_info=True)
            raise
    else:
        logger.error(f"Invalid MCP_TRANSPORT '{transport}'. Must be 'stdio' or 'http'")
        print(
            f"Error: Invalid MCP_TRANSPORT '{transport}'. Must be 'stdio' or 'http'",
            file=sys.stderr,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
