"""
Logging configuration for the Outlook MCP server.

Logs go to rotating files (JSON lines for machines, plain text for people)
and to stderr. Nothing is ever written to stdout, which carries the MCP
stdio transport.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path

# Extra attributes copied from a LogRecord into the JSON entry when present
STRUCTURED_EXTRA_FIELDS = (
    "tool_name",
    "calendar",
    "fallback_reason",
    "status_code",
    "duration_ms",
)

NOISY_LOGGERS = ("httpx", "httpcore", "msal", "urllib3")


class StructuredFormatter(logging.Formatter):
    """JSON structured formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in STRUCTURED_EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter with colors for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, use_color: bool = False) -> None:
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_color:
            color = self.COLORS.get(level, self.COLORS["RESET"])
            level = f"{color}{level}{self.COLORS['RESET']}"

        # Format: timestamp [LEVEL] logger.function:line - message
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        location = f"{record.funcName}:{record.lineno}"
        formatted = (
            f"{timestamp} [{level}] {record.name}.{location} - {record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def _rotating_handler(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Set up logging for the MCP server.

    Args:
        log_dir: Directory to store log files
        log_level: Minimum level for the readable file and console output
        max_bytes: Maximum size of each log file before rotation
        backup_count: Number of rotated files to keep
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels, filter per handler
    root_logger.handlers.clear()

    all_logs_file = log_path / "outlook_mcp_all.jsonl"
    error_logs_file = log_path / "outlook_mcp_errors.jsonl"
    readable_logs_file = log_path / "outlook_mcp.log"

    root_logger.addHandler(
        _rotating_handler(
            all_logs_file, logging.DEBUG, StructuredFormatter(), max_bytes, backup_count
        )
    )
    root_logger.addHandler(
        _rotating_handler(
            error_logs_file, logging.ERROR, StructuredFormatter(), max_bytes, backup_count
        )
    )
    root_logger.addHandler(
        _rotating_handler(
            readable_logs_file,
            numeric_level,
            HumanReadableFormatter(),
            max_bytes,
            backup_count,
        )
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(HumanReadableFormatter(use_color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("outlook_mcp.logging")
    logger.info(f"Logging initialized - Level: {log_level}")
    logger.info(f"Log directory: {log_path.absolute()}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name (typically __name__)."""
    return logging.getLogger(name)
