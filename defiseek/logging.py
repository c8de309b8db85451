"""
DeFiSeek - Structured Logging Configuration

structlog with a console renderer in debug mode and JSON otherwise.
Credentials that end up in an event are cut to a short prefix, and a chat
generation binds its chat id so every event it emits can be correlated.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from defiseek.config import Settings, settings as default_settings

SECRET_KEYS = frozenset({"api_key", "authorization", "x-api-key", "token"})
SECRET_PREFIX_LENGTH = 6


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Keep only the first characters of any credential-looking value."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = str(event_dict[key])
        event_dict[key] = value[:SECRET_PREFIX_LENGTH] + "..." if value else value
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog and stdlib logging from settings."""
    settings = settings or default_settings
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.debug:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderer = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # LangChain and the provider SDKs log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for noisy in ("httpx", "httpcore", "google", "openai", "groq"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@contextmanager
def chat_log_context(chat_id: str, **extra: Any) -> Iterator[None]:
    """Bind the chat id (and extras) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(chat_id=chat_id, **extra):
        yield


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger with optional initial context.

    Args:
        name: Logger name (usually __name__)
        **initial_context: Initial context key-value pairs
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def get_agent_logger() -> structlog.BoundLogger:
    return get_logger("defiseek.agents", component="agents")


def get_api_logger() -> structlog.BoundLogger:
    return get_logger("defiseek.api", component="api")
