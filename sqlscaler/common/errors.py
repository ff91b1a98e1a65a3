"""
Error taxonomy for scaler construction and polling.

Configuration errors are raised synchronously when a scaler is built, before
any connection attempt. Probe errors are raised from a single poll and are
never retried or replaced by a default count.
"""

MISSING_FIELD = 'MissingField'
INVALID_VALUE = 'InvalidValue'

CONNECTION_FAILED = 'ConnectionFailed'
QUERY_FAILED = 'QueryFailed'
CANCELLED = 'Cancelled'


class ConfigError(ValueError):
    """Raised when scaler metadata is missing or malformed."""
    kind = None

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MissingFieldError(ConfigError):
    kind = MISSING_FIELD

    def __init__(self, field: str):
        super().__init__(field, f"no {field} given")


class InvalidValueError(ConfigError):
    kind = INVALID_VALUE

    def __init__(self, field: str, cause=None):
        message = f"invalid value for {field}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(field, message)
        self.cause = cause


class ProbeError(Exception):
    """Raised when a poll fails to produce a record count."""
    kind = None

    def __init__(self, message: str, cause: BaseException = None, step: str = None):
        super().__init__(message)
        self.cause = cause
        self.step = step


class ConnectionFailedError(ProbeError):
    kind = CONNECTION_FAILED

    def __init__(self, cause: BaseException = None, step: str = 'connect'):
        super().__init__(f"connection failed during {step}: {cause}", cause, step)


class QueryFailedError(ProbeError):
    kind = QUERY_FAILED

    def __init__(self, cause: BaseException = None, step: str = 'query'):
        super().__init__(f"query failed during {step}: {cause}", cause, step)


class ProbeCancelledError(ProbeError):
    kind = CANCELLED

    def __init__(self, cause: BaseException = None, step: str = None):
        message = "poll cancelled"
        if step:
            message = f"{message} during {step}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, cause, step)
