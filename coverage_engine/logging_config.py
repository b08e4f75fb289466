import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

# Request context attached through ``extra=`` by the engine's components
CONTEXT_FIELDS = ("zip_code", "tile", "attempt", "response_time_ms")

_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName',
    'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'taskName', 'message', 'asctime',
) + CONTEXT_FIELDS)


class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation"""

    def __init__(self, service_name: str = "coverage-engine"):
        super().__init__()
        self.service_name = service_name
        self.hostname = os.environ.get('HOSTNAME', 'localhost')

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service_name,
            "hostname": self.hostname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_entry.setdefault("extra", {})[key] = value

        return json.dumps(log_entry, default=str, separators=(',', ':'))


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development"""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)8s | %(name)30s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)]
        if context:
            line = f"{line} [{' '.join(context)}]"
        return line


def setup_logging(
    level: str = "INFO",
    use_json: Optional[bool] = None,
    service_name: str = "coverage-engine"
) -> None:
    """Setup logging configuration for the coverage engine"""

    if use_json is None:
        use_json = os.environ.get('LOG_FORMAT', '').lower() == 'json'

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if use_json:
        formatter = StructuredJSONFormatter(service_name)
    else:
        formatter = DevelopmentFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    configure_coverage_loggers(level)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "log_format": "json" if use_json else "development",
            "log_level": level,
            "service": service_name
        }
    )


def configure_coverage_loggers(level: str) -> None:
    """Set engine component levels and quiet the HTTP stack"""
    loggers = [
        'coverage_engine.coverage_service',
        'coverage_engine.opencellid_client',
        'coverage_engine.geocoding_client',
        'coverage_engine.fallback_provider_handler',
        'coverage_engine.whitelist',
        'coverage_engine.error_handling',
        'coverage_engine.config',
    ]

    for logger_name in loggers:
        logging.getLogger(logger_name).setLevel(getattr(logging, level.upper()))

    # httpx logs every request URL at INFO, API key included
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
