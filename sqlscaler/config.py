import os
from typing import Dict, Any, Optional, NamedTuple


class Config(NamedTuple):
    """Configuration for one scaler poll run."""
    # Scaler configuration
    scaler_type: str
    metadata: Dict[str, str]
    resolved_env: Dict[str, str]
    metric_name: Optional[str]

    # Credentials
    auth_params: Dict[str, str]
    auth_secret_id: Optional[str]

    # Polling
    poll_timeout: float

    # AWS configuration
    region: str
    sso_profile: Optional[str]


def _metadata_from_env(scaler_type: str) -> Dict[str, str]:
    if scaler_type.lower() == 'mysql':
        return {
            'host': os.environ.get('MYSQL_HOST'),
            'port': os.environ.get('MYSQL_PORT'),
            'user': os.environ.get('MYSQL_USER'),
            'password': os.environ.get('MYSQL_PASSWORD'),
            'passwordFromEnv': os.environ.get('MYSQL_PASSWORD_FROM_ENV'),
            'database': os.environ.get('MYSQL_DATABASE'),
            'query': os.environ.get('MYSQL_QUERY'),
            'count': os.environ.get('TARGET_RECORD_COUNT')
        }
    return {}


def load_config(event: Dict[str, Any] = None) -> Config:
    """
    Load configuration from environment variables and optional event payload.

    Event payload values override environment variables when present.

    Args:
        event: Optional Lambda event that may contain configuration overrides

    Returns:
        Config: Configuration object with all scaler settings

    Raises:
        ValueError: If POLL_TIMEOUT is not a number
    """
    event = event or {}
    config_from_event = event.get('config', {})

    scaler_type = config_from_event.get('scaler_type') or os.environ.get('SCALER_TYPE', 'mysql')

    # Scaler metadata; an event dict replaces the env-derived one entirely
    metadata = config_from_event.get('metadata', {})
    if not metadata:
        metadata = _metadata_from_env(scaler_type)

    # Clean None values from metadata
    metadata = {k: v for k, v in metadata.items() if v is not None}

    metric_name = config_from_event.get('metric_name') or os.environ.get('METRIC_NAME')

    # Credentials: explicit auth params and/or a Secrets Manager secret holding them
    auth_params = dict(config_from_event.get('auth_params') or {})
    auth_secret_id = config_from_event.get('auth_secret_id') or os.environ.get('AUTH_SECRET_ID')

    poll_timeout = float(config_from_event.get('poll_timeout') or os.environ.get('POLL_TIMEOUT', '30'))

    # AWS configuration
    region = config_from_event.get('region') or os.environ.get('AWS_REGION', 'us-east-1')
    sso_profile = config_from_event.get('sso_profile') or os.environ.get('SSO_PROFILE')

    return Config(
        scaler_type=scaler_type,
        metadata=metadata,
        resolved_env=dict(os.environ),
        metric_name=metric_name,
        auth_params=auth_params,
        auth_secret_id=auth_secret_id,
        poll_timeout=poll_timeout,
        region=region,
        sso_profile=sso_profile
    )
