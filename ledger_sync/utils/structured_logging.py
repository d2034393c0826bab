"""
Structured logging configuration for ledger sync runs

Provides JSON-formatted logging with structured fields for:
- Page fetch progress
- Rate-limit backoff
- Sync run summaries and timings
"""

import logging
import logging.config
import json
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class SyncContext:
    """Context for sync logging"""
    session_id: str
    simulated: bool = False
    ledger_path: Optional[str] = None
    component: Optional[str] = None

    @classmethod
    def create(cls, **kwargs) -> 'SyncContext':
        """Create new sync context"""
        session_id = kwargs.get('session_id', f"sync_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}")

        return cls(
            session_id=session_id,
            simulated=kwargs.get('simulated', False),
            ledger_path=kwargs.get('ledger_path'),
            component=kwargs.get('component')
        )


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'asctime'
}


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, extra_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        log_data.update(self.extra_fields)

        extra_data = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                # Only include JSON-serializable values
                json.dumps(value)
                extra_data[key] = value
            except (TypeError, ValueError):
                extra_data[key] = str(value)

        if extra_data:
            log_data['extra'] = extra_data

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str, separators=(',', ':'))


class SyncLogger:
    """
    Structured logger for ledger sync runs

    Provides methods for logging sync events with consistent structure
    """

    def __init__(self, logger_name: str, context: Optional[SyncContext] = None):
        self.logger = logging.getLogger(logger_name)
        self.context = context or SyncContext.create(component=logger_name.split('.')[-1])

    def _log_structured(self, level: int, event_type: str, message: str, **kwargs):
        """Log structured event with context"""
        log_data = {
            'event_type': event_type,
            'session_id': self.context.session_id,
            'simulated': self.context.simulated,
            'component': self.context.component,
            **kwargs
        }

        if self.context.ledger_path:
            log_data['ledger_path'] = self.context.ledger_path

        log_data['event_timestamp'] = datetime.now(timezone.utc).isoformat()

        self.logger.log(level, message, extra=log_data)

    def page_event(self, page: int, count: int, cursor: str, message: str, **kwargs):
        """Log a successfully fetched page"""
        self._log_structured(
            level=logging.INFO,
            event_type="fetch.page",
            message=message,
            page=page,
            bill_count=count,
            cursor=cursor,
            **kwargs
        )

    def rate_limit_event(self, page: int, attempt: int, cooldown: float, message: str, **kwargs):
        """Log a rate-limit backoff"""
        self._log_structured(
            level=logging.WARNING,
            event_type="fetch.rate_limited",
            message=message,
            page=page,
            attempt=attempt,
            cooldown_seconds=cooldown,
            **kwargs
        )

    def sync_event(self, status: str, message: str, **kwargs):
        """Log sync status event"""
        level = logging.ERROR if status in ['error', 'failed'] else logging.INFO

        self._log_structured(
            level=level,
            event_type=f"sync.{status}",
            message=message,
            sync_status=status,
            **kwargs
        )

    def performance_event(self, metric_name: str, value: float, unit: str,
                          message: str, **kwargs):
        """Log performance metric"""
        self._log_structured(
            level=logging.INFO,
            event_type="performance.metric",
            message=message,
            metric_name=metric_name,
            metric_value=value,
            metric_unit=unit,
            **kwargs
        )

    def error_event(self, error_type: str, error_message: str, message: str, **kwargs):
        """Log error event"""
        self._log_structured(
            level=logging.ERROR,
            event_type=f"error.{error_type}",
            message=message,
            error_message=error_message,
            **kwargs
        )


@contextmanager
def sync_timer(logger: SyncLogger, operation: str, **context):
    """Context manager to time sync operations"""
    start_time = time.perf_counter()
    success = True
    error_msg = None

    try:
        yield
    except Exception as e:
        success = False
        error_msg = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.performance_event(
            metric_name=f"{operation}_duration",
            value=duration_ms,
            unit="milliseconds",
            message=f"Completed {operation}",
            operation=operation,
            success=success,
            error_message=error_msg,
            **context
        )


def configure_structured_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    json_format: bool = True,
    extra_fields: Optional[Dict[str, Any]] = None
):
    """
    Configure structured logging for the application

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        console_output: Whether to output to console
        json_format: Whether to use JSON formatting
        extra_fields: Extra fields to include in all log messages
    """
    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {},
        'handlers': {},
        'loggers': {
            'ledger_sync': {
                'level': log_level,
                'handlers': [],
                'propagate': False
            }
        }
    }

    if json_format:
        config['formatters']['structured'] = {
            '()': StructuredLogFormatter,
            'extra_fields': extra_fields or {}
        }
        formatter_name = 'structured'
    else:
        config['formatters']['standard'] = {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        }
        formatter_name = 'standard'

    if console_output:
        config['handlers']['console'] = {
            'class': 'logging.StreamHandler',
            'level': log_level,
            'formatter': formatter_name,
            'stream': 'ext://sys.stderr'
        }
        config['loggers']['ledger_sync']['handlers'].append('console')

    if log_file:
        config['handlers']['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'level': log_level,
            'formatter': formatter_name,
            'filename': log_file,
            'maxBytes': 10 * 1024 * 1024,  # 10MB
            'backupCount': 5
        }
        config['loggers']['ledger_sync']['handlers'].append('file')

    logging.config.dictConfig(config)

    SyncLogger("ledger_sync.logging").sync_event(
        status="logging_configured",
        message="Structured logging configured",
        log_level=log_level,
        json_format=json_format,
        log_file=log_file
    )
