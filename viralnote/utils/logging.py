"""
Structured Logging

All logs are JSON with consistent, queryable fields.
Query logs by: module, action, model, attempt, etc.

EXAMPLE QUERIES (Loki / jq)
===========================
# All errors
{project="viralnote"} | json | level="ERROR"

# Every failed attempt against a specific model
{project="viralnote"} | json | action="attempt_failed" model="gpt-4o-mini"

# Model fallbacks
{project="viralnote"} | json | action="model_fallback"

# Calls that ran out of models
{project="viralnote"} | json | action=~".*_exhausted"

USAGE
=====
from viralnote.utils.logging import log, get_logger, configure_logging

logger = get_logger()
log.info(logger, "llm.invoker", "analyze_done", "Analysis succeeded",
         model="gpt-4o-mini", attempt=2)

log.error(logger, "llm.invoker", "config_failed", "Upstream returned HTML",
          error=str(e))

ACTION NAMING
=============
Consistent suffixes for queryable actions:
  *_start     — beginning of an operation
  *_done      — successful completion
  *_failed    — error/failure
  *_fallback  — falling back to alternative path
  *_exhausted — every alternative has been used up
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from viralnote.config import debug_logging_enabled


class StructuredFormatter(logging.Formatter):
    """JSON formatter, or a compact single-line format for development."""

    def __init__(self, pretty: bool = False):
        super().__init__()
        self.pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()

        # Structured log (emitted via StructuredLogger)
        if getattr(record, "_structured", False):
            data = {
                "ts": _timestamp(),
                "level": record.levelname,
                "module": record._module,
                "action": record._action,
                "msg": msg,
            }
            for key, value in record._extra.items():
                if value is not None:
                    data[key] = value

            if self.pretty:
                return self._pretty(data)
            return json.dumps(data, default=str, separators=(",", ":"), ensure_ascii=False)

        # Third-party log: wrap in JSON so log shippers can still parse it
        if self.pretty:
            return msg
        return json.dumps(
            {
                "ts": _timestamp(),
                "level": record.levelname,
                "module": record.name,
                "action": "log",
                "msg": msg,
            },
            default=str,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def _pretty(self, data: dict) -> str:
        """Human-readable format for development."""
        ts = data["ts"][11:23]  # HH:MM:SS.mmm
        lvl = data["level"][0]  # I/W/E/D
        mod = data["module"].upper()[:12].ljust(12)
        act = data["action"]
        msg = data["msg"]

        skip = {"ts", "level", "module", "action", "msg"}
        ctx = " ".join(f"{k}={v}" for k, v in data.items() if k not in skip)

        return f"{ts} {lvl} [{mod}] {act}: {msg}" + (f" | {ctx}" if ctx else "")


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class StructuredLogger:
    """
    Centralized structured logging.

    All methods accept a stdlib logging.Logger, module name, action name,
    message, and arbitrary context fields.
    """

    def _log(
        self,
        logger: logging.Logger,
        level: int,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        """Emit a structured log."""
        extra = {
            "_structured": True,
            "_module": module,
            "_action": action,
            "_extra": {k: v for k, v in kwargs.items() if v is not None},
        }
        logger.log(level, msg, extra=extra)

    def info(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Log INFO level."""
        self._log(logger, logging.INFO, module, action, msg, **kwargs)

    def warning(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Log WARNING level."""
        self._log(logger, logging.WARNING, module, action, msg, **kwargs)

    def error(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs,
    ) -> None:
        """Log ERROR level."""
        self._log(
            logger, logging.ERROR, module, action, msg,
            error=error, error_type=error_type, **kwargs,
        )

    def debug(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Log DEBUG level."""
        self._log(logger, logging.DEBUG, module, action, msg, **kwargs)

    def trace(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        """Verbose diagnostics, emitted only when ENABLE_DEBUG_LOGGING=true.

        Used for raw payload previews and per-attempt tracing. Whatever is
        passed here must never feed back into control flow.
        """
        if debug_logging_enabled():
            self._log(logger, logging.DEBUG, module, action, msg, **kwargs)


# Singleton instance, import this everywhere
log = StructuredLogger()

_fallback_logger = None


def get_logger() -> logging.Logger:
    """Get the shared project logger."""
    global _fallback_logger
    if _fallback_logger is None:
        _fallback_logger = logging.getLogger("viralnote")
    return _fallback_logger


def configure_logging() -> None:
    """Configure root logger with structured formatter. Call once at startup.

    Reads from environment:
      LOG_FORMAT: "json" (default) or "pretty" (for development)
      LOG_LEVEL: "INFO" (default), "DEBUG", "WARNING", "ERROR"
      ENABLE_DEBUG_LOGGING: "true" forces DEBUG regardless of LOG_LEVEL
    """
    pretty = os.environ.get("LOG_FORMAT", "json") == "pretty"
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if debug_logging_enabled():
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(pretty=pretty))

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )

    # LangChain / OpenAI SDK are extremely chatty at DEBUG
    logging.getLogger("langchain").setLevel(logging.WARNING)
    logging.getLogger("langchain_core").setLevel(logging.WARNING)
    logging.getLogger("langchain_openai").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    # HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
