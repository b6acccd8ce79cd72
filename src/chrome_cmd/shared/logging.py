"""Logging setup for the two ways chrome-cmd runs.

host
    The bridge process launched by the browser. Its stdout carries
    native-messaging frames, so records go to a log file only, one JSON
    object per line.

cli
    Interactive commands. Records go to stderr through structlog's console
    renderer; each ``-v`` raises the level one step.

Both modes route stdlib records (aiohttp, asyncio) through the same
structlog renderer via ``ProcessorFormatter``.
"""

import logging
import sys
from pathlib import Path

import structlog

VERBOSITY_LEVELS = ("warning", "info", "debug")

# Applied to structlog events and to plain stdlib records alike
_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def level_for_verbosity(verbose: int) -> str:
    """Map a ``-v`` count to a level name (0 -> warning, 1 -> info, 2+ -> debug)."""
    return VERBOSITY_LEVELS[min(max(verbose, 0), len(VERBOSITY_LEVELS) - 1)]


def configure_host_logging(level: str, log_file: str | Path) -> Path:
    """Send all records to ``log_file`` as JSON lines. Never touches stdout.

    Returns:
        The resolved log file path
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    _install(
        logging.FileHandler(path, encoding="utf-8"),
        level,
        structlog.processors.JSONRenderer(),
    )
    return path


def configure_cli_logging(verbose: int = 0) -> str:
    """Send records at the level chosen by ``verbose`` to stderr.

    Returns:
        The level name in effect
    """
    level = level_for_verbosity(verbose)
    _install(logging.StreamHandler(sys.stderr), level, structlog.dev.ConsoleRenderer())
    return level


def _install(handler: logging.Handler, level: str, renderer: structlog.types.Processor) -> None:
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_PRE_CHAIN,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
