"""
Structured Logging
==================

structlog configuration shared by the CLI and long-running slicing jobs.
Library modules keep using ``logging.getLogger(__name__)``; this module only
decides where records go and how they are rendered.
"""

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, List, Optional, Union

import structlog

_MAX_LOG_BYTES = 10 * 1024 * 1024

_configured = False


def _stringify_timestamps(_logger: Any, _method: str, event_dict: dict) -> dict:
    """Render datetimes (slice bounds, probe extremes) as ISO strings."""
    for key, value in event_dict.items():
        if isinstance(value, datetime):
            event_dict[key] = value.isoformat()
    return event_dict


def _rotating_handler(path: Path, level: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=_MAX_LOG_BYTES, backupCount=backups)
    handler.setLevel(level)
    return handler


class LogManager:
    """
    Process-wide logging setup for slicing jobs.

    Records are rendered as JSON by default so slice and retry events can be
    grepped per cursor; ``json_logs=False`` switches to structlog's console
    renderer for interactive runs.
    """

    @staticmethod
    def setup(
        log_level: str = "INFO",
        log_dir: Optional[Union[str, Path]] = None,
        json_logs: bool = True,
    ) -> None:
        """
        Configure stdlib logging and structlog once per process.

        With ``log_dir`` set, everything at ``log_level`` goes to
        ``slicewise.log`` (5 backups) and errors additionally to
        ``errors.log`` (3 backups). Later calls are ignored.
        """
        global _configured
        if _configured:
            return

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
        logging.basicConfig(level=level, format="%(message)s")

        if log_dir is not None:
            directory = Path(log_dir)
            directory.mkdir(parents=True, exist_ok=True)
            root = logging.getLogger()
            root.addHandler(_rotating_handler(directory / "slicewise.log", level, backups=5))
            root.addHandler(_rotating_handler(directory / "errors.log", logging.ERROR, backups=3))

        processors: List[Any] = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _stringify_timestamps,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]
        if json_logs:
            processors.append(structlog.processors.JSONRenderer(sort_keys=True))
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=False))

        structlog.configure(
            processors=processors,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _configured = True

        structlog.get_logger("slicewise").info(
            "logging_configured",
            level=logging.getLevelName(level),
            log_dir=str(log_dir) if log_dir else None,
        )

    @staticmethod
    def get_logger(component: str, run_id: str, **context: Any):
        """Bound structlog logger carrying the job id and any cursor context."""
        if not _configured:
            LogManager.setup()
        return structlog.get_logger(component).bind(run_id=run_id, **context)
