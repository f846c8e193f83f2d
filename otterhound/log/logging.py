"""Loguru setup shared by the HTTP listener, the poll loop and delivery tasks.

Structured fields are passed as keyword arguments and end up in
``record["extra"]``; every line is tagged with the correlation id of the
context that produced it. Error-level lines are also shipped to Datadog
when ``DD_API_KEY`` is set.
"""

import logging
import os
import sys
from dataclasses import dataclass

from datadog_api_client.v2 import ApiClient, Configuration
from datadog_api_client.v2.api.logs_api import LogsApi
from datadog_api_client.v2.model.content_encoding import ContentEncoding
from datadog_api_client.v2.model.http_log import HTTPLog
from datadog_api_client.v2.model.http_log_item import HTTPLogItem
from loguru import logger as loguru_logger

NO_CORRELATION_ID = "-"

# Set by DatadogSink itself; same-named extra fields are shipped as extra_<name>.
DATADOG_RESERVED_FIELDS = frozenset({"ddsource", "ddtags", "hostname", "message", "service", "status"})

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS Z}</green> | "
    "<level>{level: <8}</level> | "
    "<blue>[{extra[correlation_id]}]</blue> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | <level>{extra}</level>"
)


@dataclass(frozen=True)
class LogSettings:
    environment: str
    service: str
    hostname: str
    level: str
    datadog_level: str
    datadog_api_key: str

    @classmethod
    def from_env(cls) -> "LogSettings":
        # Read straight from the environment: logging must work before Settings is importable.
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            service=os.getenv("SERVICE_NAME", "otterhound"),
            hostname=os.getenv("HOSTNAME", "unknown"),
            level=os.getenv("LOGLEVEL", "INFO"),
            datadog_level=os.getenv("LOGLEVEL_DATADOG", "ERROR"),
            datadog_api_key=os.getenv("DD_API_KEY", ""),
        )


def current_correlation_id() -> str:
    # Imported here: the middleware package logs through this module.
    from otterhound.middleware.correlation import get_correlation_id
    return get_correlation_id() or NO_CORRELATION_ID


def correlation_id_patcher(record):
    """Tag records with the correlation id unless the caller passed one explicitly."""
    record["extra"].setdefault("correlation_id", current_correlation_id())


class InterceptHandler(logging.Handler):
    """Forward standard-library records (uvicorn, sqlalchemy, httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class DatadogSink:
    """Loguru sink submitting each message to the Datadog logs intake."""

    def __init__(self, log_settings: LogSettings):
        self._settings = log_settings
        self._api = LogsApi(ApiClient(Configuration()))

    def build_item(self, record) -> HTTPLogItem:
        level = record["level"].name
        fields = {
            f"extra_{key}" if key in DATADOG_RESERVED_FIELDS else key: str(value)
            for key, value in record["extra"].items()
        }
        return HTTPLogItem(
            ddsource="loguru",
            ddtags=f"level:{level},env:{self._settings.environment}",
            hostname=self._settings.hostname,
            message=record["message"],
            service=self._settings.service,
            status=level,
            **fields,
        )

    def __call__(self, message) -> None:
        body = HTTPLog([self.build_item(message.record)])
        self._api.submit_log(content_encoding=ContentEncoding.DEFLATE, body=body)


def init_logging(log_settings: LogSettings = None):
    log_settings = log_settings or LogSettings.from_env()
    try:
        loguru_logger.remove()
        loguru_logger.configure(patcher=correlation_id_patcher)
        loguru_logger.add(sys.stdout, format=CONSOLE_FORMAT, level=log_settings.level)

        if len(log_settings.datadog_api_key) > 1:
            loguru_logger.add(DatadogSink(log_settings), level=log_settings.datadog_level, enqueue=True)
        else:
            loguru_logger.debug("Datadog API key is not set, logging to console only")
    except Exception as e:
        print(f"Failed to initialize logging: {e}")
        loguru_logger.remove()
        loguru_logger.add(sys.stdout, format="{time} | {level} | {message}", level="DEBUG")
    return loguru_logger


logger = init_logging()
