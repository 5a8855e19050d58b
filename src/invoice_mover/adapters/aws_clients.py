"""AWS client management."""
import os
import boto3
import logging
from typing import Any, Dict, Optional

from invoice_mover.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Creates and caches boto3 clients configured from settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._clients: Dict[str, Any] = {}

        # Cache commonly used values
        self.region = self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url
        self.mode = self.settings.deployment_mode

        logger.debug(f"AWSClientManager mode={self.mode} region={self.region} endpoint={self.endpoint_url}")

    def _client_kwargs(self) -> Dict[str, Any]:
        client_kwargs = {
            'region_name': self.region
        }

        # Credentials from settings only when set; otherwise boto3's default chain applies
        if self.settings.aws_access_key_id:
            client_kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            client_kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key

        # Add endpoint URL for local/mock modes
        if self.endpoint_url and self.settings.is_local:
            client_kwargs['endpoint_url'] = self.endpoint_url
        return client_kwargs

    def _session(self) -> boto3.Session:
        aws_profile = os.environ.get('AWS_PROFILE')
        if aws_profile and self.mode == 'aws-prod':
            return boto3.Session(profile_name=aws_profile)
        return boto3.Session()

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        try:
            client = self._session().client(service_name, **self._client_kwargs())
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise
        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

    def get_resource(self, service_name: str) -> Any:
        """Get or create an AWS service resource (used for DynamoDB tables)."""
        cache_key = f"resource:{service_name}"
        if cache_key in self._clients:
            return self._clients[cache_key]

        try:
            resource = self._session().resource(service_name, **self._client_kwargs())
        except Exception as e:
            logger.error(f"Error creating {service_name} resource: {str(e)}")
            raise
        self._clients[cache_key] = resource
        return resource


def get_s3_client(manager: Optional[AWSClientManager] = None):
    """Get the S3 client."""
    return (manager or AWSClientManager()).get_client('s3')


def get_sqs_client(manager: Optional[AWSClientManager] = None):
    """Get the SQS client."""
    return (manager or AWSClientManager()).get_client('sqs')


def get_dynamodb_resource(manager: Optional[AWSClientManager] = None):
    """Get the DynamoDB service resource."""
    return (manager or AWSClientManager()).get_resource('dynamodb')
