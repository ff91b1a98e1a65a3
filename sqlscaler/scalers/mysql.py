import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional

import pymysql

from sqlscaler.common.context import PollContext
from sqlscaler.common.errors import (
    ConfigError,
    ConnectionFailedError,
    InvalidValueError,
    MissingFieldError,
    ProbeCancelledError,
    ProbeError,
    QueryFailedError,
)
from sqlscaler.scalers.base import ExternalMetricValue, MetricSpec, Scaler

RECORD_COUNT_METRIC_NAME = 'RecordCount'
DEFAULT_MYSQL_HOST = 'dbserver.default.svc.cluster.local'
DEFAULT_MYSQL_PORT = '3306'
DEFAULT_MYSQL_USER = 'root'
DEFAULT_MYSQL_PASSWORD = ''

# Used when the poll context carries no deadline
DEFAULT_CONNECT_TIMEOUT = 10
MIN_DRIVER_TIMEOUT = 0.001
# Upper bound pymysql accepts for connect_timeout
MAX_DRIVER_TIMEOUT = 31536000

log = logging.getLogger(__name__)


class MysqlMetadata(NamedTuple):
    """Validated connection and query settings for one scaling target."""
    target_record_count: int
    host: str
    port: str
    user: str
    password: str
    database: str
    query: str


def _value_or_default(metadata: Dict[str, str], key: str, default: str) -> str:
    value = metadata.get(key)
    return value if value else default


def _resolve_password(metadata: Dict[str, str], resolved_env: Dict[str, str],
                      auth_params: Dict[str, str]) -> str:
    if 'password' in auth_params:
        return auth_params['password']

    env_key = metadata.get('passwordFromEnv')
    if env_key and resolved_env.get(env_key):
        return resolved_env[env_key]

    return _value_or_default(metadata, 'password', DEFAULT_MYSQL_PASSWORD)


def parse_mysql_metadata(metadata: Dict[str, str], resolved_env: Dict[str, str] = None,
                         auth_params: Dict[str, str] = None) -> MysqlMetadata:
    """
    Validate raw scaler metadata and build an immutable MysqlMetadata.

    Only structural checks happen here; credentials and the query itself are
    first exercised by the database on the first poll.

    Args:
        metadata: Scaler metadata (host, port, user, password, passwordFromEnv,
                  database, query, count)
        resolved_env: Environment of the scale target, used by passwordFromEnv
        auth_params: Values from the credential store; 'password' overrides metadata

    Returns:
        MysqlMetadata: The resolved settings

    Raises:
        MissingFieldError: If database, query or count is missing or empty
        InvalidValueError: If count is not a non-negative integer
    """
    metadata = metadata or {}
    resolved_env = resolved_env or {}
    auth_params = auth_params or {}

    database = metadata.get('database')
    if not database:
        raise MissingFieldError('database')

    query = metadata.get('query')
    if not query:
        raise MissingFieldError('query')

    # Event payloads may carry the count as a JSON number, including 0
    count = metadata.get('count')
    if count is None or count == '':
        raise MissingFieldError('count')
    try:
        target_record_count = int(str(count))
    except ValueError as e:
        raise InvalidValueError('count', e) from e
    if target_record_count < 0:
        raise InvalidValueError('count', f"{target_record_count} is negative")

    return MysqlMetadata(
        target_record_count=target_record_count,
        host=_value_or_default(metadata, 'host', DEFAULT_MYSQL_HOST),
        port=_value_or_default(metadata, 'port', DEFAULT_MYSQL_PORT),
        user=_value_or_default(metadata, 'user', DEFAULT_MYSQL_USER),
        password=_resolve_password(metadata, resolved_env, auth_params),
        database=database,
        query=query
    )


def _driver_timeouts(ctx: PollContext) -> Dict[str, float]:
    remaining = ctx.remaining()
    if remaining is None:
        return {'connect_timeout': DEFAULT_CONNECT_TIMEOUT}

    remaining = min(max(remaining, MIN_DRIVER_TIMEOUT), MAX_DRIVER_TIMEOUT)
    return {
        'connect_timeout': remaining,
        'read_timeout': remaining,
        'write_timeout': remaining
    }


def _bound_connection_timeouts(ctx: PollContext, connection):
    # pymysql applies these to the socket before every read and write
    timeouts = _driver_timeouts(ctx)
    if 'read_timeout' in timeouts:
        connection._read_timeout = timeouts['read_timeout']
        connection._write_timeout = timeouts['write_timeout']


def _probe_error(ctx: PollContext, error_cls, cause: BaseException, step: str) -> ProbeError:
    # A driver failure after cancellation or deadline is reported as cancellation
    if ctx.cancelled:
        return ProbeCancelledError(cause, step)
    return error_cls(cause, step)


def _scan_count(row) -> int:
    if len(row) != 1:
        raise ValueError(f"expected exactly one column, got {len(row)}")

    value = row[0]
    if value is None:
        raise ValueError("cannot scan NULL into a record count")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, (Decimal, float)):
        if value % 1 != 0:
            raise ValueError(f"cannot scan non-integral value {value} into a record count")
        return int(value)
    if isinstance(value, (str, bytes)):
        return int(value)

    raise TypeError(f"cannot scan {type(value).__name__} into a record count")


def _run_count_query(ctx: PollContext, connection, query: str, logger: logging.Logger) -> int:
    count = 0
    rows_seen = 0
    try:
        with connection.cursor() as cursor:
            # No args: the query string is sent as-is, without %-substitution
            cursor.execute(query)
            for row in cursor:
                try:
                    count = _scan_count(row)
                except (TypeError, ValueError) as e:
                    raise QueryFailedError(e, 'scan') from e
                rows_seen += 1
    except pymysql.MySQLError as e:
        raise _probe_error(ctx, QueryFailedError, e, 'query') from e

    if rows_seen > 1:
        logger.warning(f"Query returned {rows_seen} rows, using the value of the last row ({count})")
    logger.debug(f"Total rows found = {count}")
    return count


def _close_connection(connection, logger: logging.Logger):
    try:
        connection.close()
    except pymysql.MySQLError as e:
        logger.warning(f"Error closing MySQL connection: {e}")


def get_record_count(ctx: PollContext, metadata: MysqlMetadata, logger: logging.Logger = None) -> int:
    """
    Run the configured query once and return its scalar count.

    A fresh connection is opened for every call and closed on every exit path.
    There is no retry; each call is one attempt.

    Args:
        ctx: Poll context, checked before each blocking step and used for driver timeouts
        metadata: Resolved MySQL settings
        logger: Logger for diagnostics (default: module logger)

    Returns:
        int: The value from the last row of the result, 0 for an empty result

    Raises:
        ProbeCancelledError: If the context is cancelled or its deadline passes
        ConnectionFailedError: If the connection or liveness check fails
        QueryFailedError: If the query fails or a row cannot be read as an integer
    """
    logger = logger or log
    ctx.raise_if_done('connect')

    try:
        port = int(metadata.port)
    except ValueError as e:
        raise ConnectionFailedError(e, 'build') from e

    try:
        connection = pymysql.connect(
            host=metadata.host,
            port=port,
            user=metadata.user,
            password=metadata.password,
            database=metadata.database,
            **_driver_timeouts(ctx)
        )
    except (pymysql.MySQLError, ValueError) as e:
        raise _probe_error(ctx, ConnectionFailedError, e, 'connect') from e

    try:
        ctx.raise_if_done('ping')
        _bound_connection_timeouts(ctx, connection)
        try:
            connection.ping(reconnect=False)
        except pymysql.MySQLError as e:
            raise _probe_error(ctx, ConnectionFailedError, e, 'ping') from e

        ctx.raise_if_done('query')
        _bound_connection_timeouts(ctx, connection)
        return _run_count_query(ctx, connection, metadata.query, logger)
    finally:
        _close_connection(connection, logger)


class MysqlScaler(Scaler):
    """
    Scaler reporting the count returned by a MySQL query.

    Holds nothing but the immutable metadata, so one instance may be polled
    concurrently. Connections live for a single poll.
    """

    def __init__(self, resolved_env: Dict[str, str], metadata: Dict[str, str],
                 auth_params: Dict[str, str], logger: logging.Logger = None):
        self._logger = logger or log
        try:
            self.metadata = parse_mysql_metadata(metadata, resolved_env, auth_params)
        except ConfigError as e:
            self._logger.error(f"Error parsing mysql metadata: {e}")
            raise

    def check_active(self, ctx: PollContext) -> bool:
        try:
            count = get_record_count(ctx, self.metadata, self._logger)
        except ProbeError as e:
            self._logger.error(f"Error checking MySQL activity: {e}", exc_info=True)
            raise

        return count > 0

    def describe_metric(self) -> MetricSpec:
        return MetricSpec(
            metric_name=RECORD_COUNT_METRIC_NAME,
            target_average_value=self.metadata.target_record_count
        )

    def fetch_metrics(self, ctx: PollContext, metric_name: str,
                      metric_selector: Optional[Any] = None) -> List[ExternalMetricValue]:
        try:
            count = get_record_count(ctx, self.metadata, self._logger)
        except ProbeError as e:
            self._logger.error(f"Error getting record count: {e}", exc_info=True)
            raise

        return [ExternalMetricValue(
            metric_name=metric_name,
            value=count,
            timestamp=datetime.now(timezone.utc)
        )]

    def close(self):
        # Connections are per poll; nothing is held between calls
        return None
