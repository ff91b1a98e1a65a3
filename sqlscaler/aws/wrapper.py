import json
import logging
import boto3
from botocore.exceptions import ClientError
from botocore.config import Config
from retry import retry

# Define constants - these would typically come from a config file
RETRIES_NUMBER = 3
REGION = 'us-east-1'


class AWSWrapper:
    """
    Wrapper class for AWS operations with retry capabilities
    """

    def __init__(self, aws_access_key_id: str = None, aws_secret_access_key: str = None,
                 aws_session_token: str = None, sso_profile_name: str = None,
                 region_name: str = REGION):
        self._region_name = region_name
        self._session = self._create_boto_session(aws_access_key_id, aws_secret_access_key,
                                                  aws_session_token, sso_profile_name)

    @retry(exceptions=ClientError, tries=RETRIES_NUMBER, delay=3)
    def _create_boto_session(self, aws_access_key_id: str = None, aws_secret_access_key: str = None,
                             aws_session_token: str = None, sso_profile_name: str = None):
        logging.debug("Creating boto3 session via " + ("SSO profile name" if sso_profile_name else "AWS access key"))
        return boto3.session.Session(profile_name=sso_profile_name, region_name=self._region_name) \
            if sso_profile_name else boto3.session.Session(aws_access_key_id, aws_secret_access_key,
                                                           aws_session_token, region_name=self._region_name)

    @retry(exceptions=ClientError, tries=RETRIES_NUMBER, delay=3)
    def create_aws_client(self, service_name: str, region_name: str = None, config=None):
        """
        Create a boto3 client with retry capability.

        Args:
            service_name: AWS service name ('secretsmanager', 'sts', etc.)
            region_name: Optional AWS region override
            config: Optional boto3 configuration

        Returns:
            Boto3 client for the requested service
        """
        logging.debug(f'creating aws client for: {service_name}')

        default_config = Config(
            connect_timeout=5,
            read_timeout=10
        )
        return self._session.client(service_name=service_name, region_name=region_name,
                                    config=config or default_config)

    @retry(exceptions=ClientError, tries=RETRIES_NUMBER, delay=3)
    def get_secret_dict(self, secret_id: str) -> dict:
        """
        Read a Secrets Manager secret holding a flat JSON object.

        Args:
            secret_id: Secret name or ARN

        Returns:
            dict: The secret's key/value pairs, values converted to strings

        Raises:
            ClientError: If the secret cannot be read after retries
            ValueError: If the secret is not a JSON object
        """
        secrets_client = self.create_aws_client('secretsmanager')

        try:
            response = secrets_client.get_secret_value(SecretId=secret_id)
        except ClientError as e:
            logging.error(f"Error reading secret {secret_id}: {e}")
            raise

        secret_string = response.get('SecretString')
        if secret_string is None:
            raise ValueError(f"Secret {secret_id} has no SecretString")

        try:
            secret = json.loads(secret_string)
        except json.JSONDecodeError as e:
            raise ValueError(f"Secret {secret_id} is not valid JSON: {e}") from e

        if not isinstance(secret, dict):
            raise ValueError(f"Secret {secret_id} is not a JSON object")

        logging.debug(f"Loaded {len(secret)} keys from secret {secret_id}")
        return {k: str(v) for k, v in secret.items() if v is not None}
