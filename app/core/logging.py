import sys
import structlog
import logging
from app.core.config import get_settings

SECRET_FIELDS = {
    "password", "token", "secret", "api_key",
    "aws_access_key_id", "aws_secret_access_key", "aws_session_token",
    "client_secret", "service_account_json", "credentials",
}


def secret_redactor(logger, method_name, event_dict):
    """
    Redact credential material from logs.
    Profiles carry raw provider secrets, so nothing credential-shaped may reach a sink.
    """
    for field in SECRET_FIELDS:
        if field in event_dict:
            event_dict[field] = "[REDACTED]"

    for container in ["details", "extra", "profile"]:
        if container in event_dict and isinstance(event_dict[container], dict):
            for field in SECRET_FIELDS:
                if field in event_dict[container]:
                    event_dict[container][field] = "[REDACTED]"

    return event_dict


def setup_logging():
    settings = get_settings()

    # 1. Choose the renderer based on environment
    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        min_level = logging.INFO

    # 2. Processor pipeline
    processors = [
        structlog.contextvars.merge_contextvars,  # trace_id bound by TraceIdMiddleware
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        secret_redactor,
        renderer
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # 3. Route stdlib logging (uvicorn, botocore, azure) through the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=min_level,
    )
    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
