import logging
from typing import Dict, Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sqlscaler.aws.wrapper import AWSWrapper
from sqlscaler.common.context import PollContext
from sqlscaler.common.errors import ConfigError, ProbeError
from sqlscaler.common.logger import get_scaler_logger
from sqlscaler.config import load_config, Config
from sqlscaler.scalers.base import Scaler
from sqlscaler.scalers.mysql import MysqlScaler

# Map scaler types to their implementations; all implement the Scaler contract
SCALERS = {
    'mysql': MysqlScaler
}

# Seconds kept back from the Lambda's remaining time to report a result
LAMBDA_TIME_MARGIN = 1.0


def build_scaler(scaler_type: str, resolved_env: Dict[str, str], metadata: Dict[str, str],
                 auth_params: Dict[str, str], logger=None) -> Scaler:
    """
    Create a scaler of the given type.

    Args:
        scaler_type: Registered scaler type (e.g. 'mysql')
        resolved_env: Environment of the scale target
        metadata: Scaler metadata
        auth_params: Credential-store parameters
        logger: Optional logger handed to the scaler

    Returns:
        Scaler: The configured scaler

    Raises:
        ValueError: If the scaler type is not supported
        ConfigError: If the metadata is invalid
    """
    scaler_cls = SCALERS.get(scaler_type.lower())
    if scaler_cls is None:
        supported = ', '.join(SCALERS.keys())
        raise ValueError(f"Unsupported scaler type: {scaler_type}. Supported types: {supported}")

    if logger is None:
        logger = get_scaler_logger(scaler_type.lower(), metadata.get('database'))
    return scaler_cls(resolved_env, metadata, auth_params, logger=logger)


def resolve_auth_params(config: Config) -> Dict[str, str]:
    """
    Merge auth params from the configured secret with explicit ones.

    Explicit auth params win over keys read from the secret.
    """
    auth_params = {}
    if config.auth_secret_id:
        aws_wrapper = AWSWrapper(
            sso_profile_name=config.sso_profile,
            region_name=config.region
        )
        auth_params.update(aws_wrapper.get_secret_dict(config.auth_secret_id))
        logging.info(f"Loaded auth params from secret {config.auth_secret_id}")

    auth_params.update(config.auth_params)
    return auth_params


def poll_scaler(scaler: Scaler, ctx: PollContext, metric_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Run one poll cycle against a scaler the way the host controller does.

    Args:
        scaler: Scaler to poll
        ctx: Poll context shared by both probes of the cycle
        metric_name: Name to report the value under (default: the metric spec's name)

    Returns:
        dict: Activity flag, metric spec and metric values

    Raises:
        ProbeError: If either probe fails
    """
    metric_spec = scaler.describe_metric()
    metric_name = metric_name or metric_spec.metric_name

    is_active = scaler.check_active(ctx)
    metrics = scaler.fetch_metrics(ctx, metric_name, None)

    logging.info(f"Poll complete - active: {is_active}, values: {[m.value for m in metrics]}, "
                 f"target: {metric_spec.target_average_value}")

    return {
        'is_active': is_active,
        'metric_spec': metric_spec.to_dict(),
        'metrics': [m.to_dict() for m in metrics]
    }


def _poll_timeout(config: Config, context: Any) -> float:
    timeout = config.poll_timeout
    get_remaining = getattr(context, 'get_remaining_time_in_millis', None)
    if callable(get_remaining):
        lambda_remaining = get_remaining() / 1000.0 - LAMBDA_TIME_MARGIN
        timeout = max(0.0, min(timeout, lambda_remaining))
    return timeout


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler that builds a scaler and runs one poll cycle.

    Configuration can be provided via environment variables or in the event payload.

    Args:
        event: AWS Lambda event object, can contain configuration overrides
        context: AWS Lambda context object

    Returns:
        dict: Poll result with activity, metric spec and values, or statusCode/error
    """
    try:
        config = load_config(event)
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        return {"statusCode": 400, "error": str(e)}

    logging.info(f"Starting {config.scaler_type} scaler poll")

    try:
        auth_params = resolve_auth_params(config)
    except (ClientError, BotoCoreError, ValueError) as e:
        logging.error(f"Error resolving auth params: {e}", exc_info=True)
        return {"statusCode": 500, "error": str(e)}

    try:
        scaler = build_scaler(config.scaler_type, config.resolved_env, config.metadata, auth_params)
    except ConfigError as e:
        logging.error(f"Invalid {config.scaler_type} metadata: {e}")
        return {"statusCode": 400, "error": str(e), "field": e.field}
    except ValueError as e:
        logging.error(str(e))
        return {"statusCode": 400, "error": str(e)}

    ctx = PollContext(timeout=_poll_timeout(config, context))
    try:
        result = poll_scaler(scaler, ctx, config.metric_name)
    except ProbeError as e:
        logging.error(f"Error polling {config.scaler_type} scaler: {e}")
        return {"statusCode": 500, "error": str(e), "kind": e.kind}
    finally:
        scaler.close()

    result['scaler_type'] = config.scaler_type
    return result
