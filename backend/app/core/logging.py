"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.

Every line carries the request context bound by the middleware, and
reconciliation code binds the booking and payment intent it is working on
(`payment_context`) so webhook and verify lines can be followed per booking.
Provider secrets never reach the output.
"""

import logging
import sys
from typing import Optional

import structlog
from app.core.config import get_settings

# Keys whose values must never be rendered
SECRET_KEYS = frozenset(
    {"client_secret", "stripe_signature", "signature", "authorization", "password", "token"}
)


def mask_secrets(logger, method_name: str, event_dict: dict) -> dict:
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def payment_context(booking_id: Optional[int] = None, intent_id: Optional[str] = None):
    """Bind booking_id / intent_id to every log line inside the `with` block."""
    bound = {"booking_id": booking_id, "intent_id": intent_id}
    return structlog.contextvars.bound_contextvars(
        **{key: value for key, value in bound.items() if value is not None}
    )


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        mask_secrets,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    # stripe logs request bodies at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
