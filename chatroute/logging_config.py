"""structlog setup for chatroute.

Every module logs through ``structlog.get_logger("chatroute.<subsystem>")``.
Records go to the console and to rotating files under the log dir:

    chatroute.log       everything at the global level
    <subsystem>.log     one per entry of SUBSYSTEMS, with its own level

Actor ids are phone numbers on Signal, so the ``sanitize_secrets``
processor masks them to their last four digits along with tokens.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

SUBSYSTEMS = ("bot", "dispatch", "permissions", "transport", "extensions")

LOGGER_PREFIX = "chatroute"

_REDACTED = "***REDACTED***"
_BEARER = re.compile(r"Bearer\s+[a-zA-Z0-9_./-]{20,}")
_KEY_VALUE = re.compile(r"(?i)(token|secret|password)=([^\s&]+)")
_PHONE = re.compile(r"\+\d{7,15}")


def _scrub(value: str) -> str:
    value = _BEARER.sub(_REDACTED, value)
    value = _KEY_VALUE.sub(lambda m: f"{m.group(1)}={_REDACTED}", value)
    return _PHONE.sub(lambda m: "..." + m.group(0)[-4:], value)


def _scrub_any(value: Any) -> Any:
    if isinstance(value, str):
        return _scrub(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) if isinstance(v, str) else v for v in value)
    if isinstance(value, dict):
        return {k: _scrub(v) if isinstance(v, str) else v for k, v in value.items()}
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor masking tokens, passwords and phone numbers.

    Strings nested one level deep in lists, tuples and dicts are
    scrubbed too.
    """
    for key in list(event_dict):
        event_dict[key] = _scrub_any(event_dict[key])
    return event_dict


@dataclass
class _LogSettings:
    log_dir: Path
    level: int = logging.INFO
    subsystem_levels: Dict[str, int] = field(default_factory=dict)
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    cache_loggers: bool = False

    @classmethod
    def from_config(cls, config) -> "_LogSettings":
        level = _level(config.logging_level, logging.INFO)
        return cls(
            log_dir=Path(config.log_dir),
            level=level,
            subsystem_levels={
                name: _level(value, level)
                for name, value in (config.logging_subsystem_levels or {}).items()
            },
            max_bytes=int(config.logging_max_file_size_mb) * 1024 * 1024,
            backup_count=int(config.logging_backup_count),
            cache_loggers=True,
        )


def _level(name: Any, default: int) -> int:
    return getattr(logging, str(name).upper(), default) if name else default


def _file_handler(
    path: Path, level: int, settings: _LogSettings, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger, level: int) -> logging.Logger:
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    return logger


def setup_logging(config=None) -> None:
    """Configure console and per-subsystem file logging.

    Called twice by the entry point: once without a config so startup
    can log, then with the loaded :class:`~chatroute.config.Config`.
    Only the second call lets structlog cache bound loggers.
    """
    if config is not None:
        settings = _LogSettings.from_config(config)
    else:
        settings = _LogSettings(log_dir=Path(__file__).parent.parent / "logs")

    log_to_files = True
    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log_to_files = False
        print(
            f"WARNING: cannot create log directory {settings.log_dir} ({exc}); "
            "logging to the console only.",
            file=sys.stderr,
        )

    file_formatter: Optional[logging.Formatter] = None
    if log_to_files:
        file_formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.format_exc_info,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )

    # Handlers filter by level; loggers let everything through
    root = _reset(logging.getLogger(), logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    package_logger = _reset(logging.getLogger(LOGGER_PREFIX), logging.DEBUG)
    if file_formatter is not None:
        package_logger.addHandler(
            _file_handler(
                settings.log_dir / f"{LOGGER_PREFIX}.log",
                settings.level,
                settings,
                file_formatter,
            )
        )

    for subsystem in SUBSYSTEMS:
        level = settings.subsystem_levels.get(subsystem, settings.level)
        sub_logger = _reset(logging.getLogger(f"{LOGGER_PREFIX}.{subsystem}"), level)
        if file_formatter is not None:
            sub_logger.addHandler(
                _file_handler(
                    settings.log_dir / f"{subsystem}.log", level, settings, file_formatter
                )
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
