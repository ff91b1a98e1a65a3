import os
import logging
import json

# Attributes every LogRecord carries; anything else was passed via `extra`
_RECORD_ATTRIBUTES = frozenset({
    'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
    'funcName', 'id', 'levelname', 'levelno', 'lineno', 'module',
    'msecs', 'message', 'msg', 'name', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info', 'taskName', 'thread', 'threadName'
})


def setup_logging(level=None):
    """
    Set up logging with JSON formatting when running inside AWS.

    Args:
        level: Optional log level override (default: uses LOG_LEVEL env var or INFO)
    """
    # Get log level from environment or use default
    if level is None:
        level = os.environ.get('LOG_LEVEL', 'INFO')

    # Convert string level to logging constant
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s [%(levelname)s] %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Add JSON formatter for production environments
    if os.environ.get('AWS_EXECUTION_ENV') is not None:
        # Running in Lambda or other AWS service
        root_logger = logging.getLogger()
        for handler in root_logger.handlers:
            handler.setFormatter(JsonFormatter())

    # Silence noisy loggers
    for noisy in ('boto3', 'botocore', 'urllib3', 'pymysql'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.debug("Logging initialized")


def get_scaler_logger(scaler_type: str, target: str = None) -> logging.LoggerAdapter:
    """
    Build the logger handed to a scaler instance.

    Records carry the scaler type and scaling target as extra fields, which
    JsonFormatter emits as top-level keys.
    """
    extra = {'scaler': scaler_type}
    if target:
        extra['target'] = target
    return logging.LoggerAdapter(logging.getLogger(f"sqlscaler.{scaler_type}"), extra)


class JsonFormatter(logging.Formatter):
    """
    Format logs as JSON for CloudWatch Logs Insights.
    """

    def format(self, record):
        log_record = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'name': record.name,
            'message': record.getMessage(),
            'file': record.pathname,
            'line': record.lineno,
            'function': record.funcName
        }

        # Add exception info if present
        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_record[key] = value

        return json.dumps(log_record, default=str)
