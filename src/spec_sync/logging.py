"""Structured logging for spec-sync.

Configures structlog with context processors, output formatters,
redaction of provider API keys and clipping of long values such as
prompts or generated code.
"""

import logging
import re
import sys
from pathlib import Path

import structlog

# Provider key shapes: OpenAI/Anthropic "sk-", Groq "gsk_", Google "AIza",
# and "key=" query parameters in request URLs
_SENSITIVE_RE = re.compile(r"(sk-|gsk_|AIza|key=)[a-zA-Z0-9_\-]{6,}")

MAX_VALUE_CHARS = 500


def redact_sensitive(logger: object, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that redacts API keys from string values."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _SENSITIVE_RE.sub(lambda m: m.group(1) + "***", value)
    return event_dict


def truncate_long_values(logger: object, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that clips string values to MAX_VALUE_CHARS."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
            clipped = len(value) - MAX_VALUE_CHARS
            event_dict[key] = f"{value[:MAX_VALUE_CHARS]}... [{clipped} more chars]"
    return event_dict


def _formatter(renderer: structlog.types.Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(
    level: str = "info",
    json_output: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure structlog for the entire application.

    Console output goes to stderr; ``json_output`` switches it from the
    human-readable renderer to JSON lines. A ``log_file`` always receives
    JSON lines so batch runs can be inspected afterwards.

    Args:
        level: Log level (debug, info, warning, error).
        json_output: If True, output JSON lines on stderr.
        log_file: Optional file that receives log lines in addition to stderr.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        stream=sys.stderr,
        force=True,
    )
    root = logging.getLogger()

    if json_output:
        console_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    for handler in root.handlers:
        handler.setFormatter(_formatter(console_renderer))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_sensitive,
            truncate_long_values,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(module: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to a module name.

    Args:
        module: Module name (e.g., "generator", "llm").

    Returns:
        Bound structlog logger.
    """
    return structlog.get_logger(module=module)
