# src/invoice_mover/settings.py
from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from invoice_mover.settings import get_settings
        settings = get_settings()
        table_name = settings.invoice_table_name
    """

    # Application Settings
    app_name: str = Field(
        default="invoice-mover",
        description="Application name"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # DynamoDB Configuration
    invoice_table_name: str = Field(
        default="invoices",
        description="DynamoDB table tracking invoice files"
    )

    # SQS Configuration
    sqs_queue_name: str = Field(
        default="invoice-move-queue",
        description="SQS queue carrying move requests"
    )

    sqs_queue_url: Optional[str] = Field(
        default=None,
        alias="SQS_QUEUE_URL",
        description="Full SQS queue URL"
    )

    dead_letter_queue_name: str = Field(
        default="invoice-move-dlq",
        description="Queue receiving move requests that exceeded max_receive_count"
    )

    max_receive_count: int = Field(
        default=3,
        ge=1,
        description="Deliveries before a move request is redirected to the dead-letter queue"
    )

    receive_batch_size: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Maximum messages fetched per receive call"
    )

    # S3 Layout
    source_folder: str = Field(
        default="incoming",
        description="Folder new invoice files are uploaded to"
    )

    destination_folder: str = Field(
        default="moved",
        description="Folder invoice files are relocated to"
    )

    file_extension: str = Field(
        default=".xml",
        description="Required (case-sensitive) extension of ingested files"
    )

    # Scheduling
    moving_delay_seconds: int = Field(
        default=0,
        ge=0,
        description="Offset added to the declared invoice time to derive the moving time"
    )

    stream_trigger_status: str = Field(
        default="COPIED",
        description=(
            "Record status that makes a MODIFY stream event trigger a move attempt. The pipeline "
            "only INSERTs COPIED records and MODIFYs them to UPLOADED, so with COPIED the stream "
            "trigger fires only when another writer updates a record that is still COPIED, such "
            "as an operator rescheduling its movingTime"
        )
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @validator('deployment_mode', pre=True)
    def normalize_deployment_mode(cls, v):
        """Normalize deployment mode values for backwards compatibility."""
        if v:
            mode_mapping = {
                "local-mock": "local-dev",
                "cloud": "aws-prod",
            }
            return mode_mapping.get(v, v)
        return v

    @validator('deployment_mode')
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @validator('stream_trigger_status')
    def validate_stream_trigger_status(cls, v):
        valid_statuses = ["COPIED", "UPLOADED"]
        if v not in valid_statuses:
            raise ValueError(f"Invalid stream_trigger_status: {v}. Must be one of {valid_statuses}")
        return v

    @validator('source_folder', 'destination_folder')
    def strip_folder_slashes(cls, v):
        return v.strip("/")

    @validator('aws_endpoint_url', always=True)
    def set_endpoint_url_based_on_mode(cls, v, values):
        """Auto-set endpoint URL based on deployment mode if not explicitly provided."""
        if v is None and 'deployment_mode' in values:
            mode = values['deployment_mode']
            if mode in ["local-dev", "aws-mock"]:
                return "http://localhost:5000"
        return v

    @validator('aws_access_key_id', 'aws_secret_access_key', always=True)
    def set_mock_credentials_for_local_modes(cls, v, values):
        """Auto-set mock credentials for local modes if not provided."""
        if v is None and 'deployment_mode' in values:
            mode = values['deployment_mode']
            if mode in ["local-dev", "aws-mock"]:
                return "mock"
            elif mode == "aws-prod":
                # In production, return None to let IAM execution role handle auth
                return None
        return v

    @validator('sqs_queue_url', always=True)
    def generate_queue_url_if_needed(cls, v, values):
        """Generate SQS queue URL if not provided."""
        if v is None and all(k in values for k in ['deployment_mode', 'sqs_queue_name']):
            mode = values['deployment_mode']
            queue_name = values['sqs_queue_name']

            if mode in ["local-dev", "aws-mock"]:
                endpoint = values.get('aws_endpoint_url') or 'http://localhost:5000'
                # moto server URLs carry no account number
                return f"{endpoint}/queue/{queue_name}"
            # For aws-prod, the URL is resolved from the queue name at runtime
        return v

    @property
    def is_local(self) -> bool:
        return self.deployment_mode in ["local-dev", "aws-mock"]

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=(".env", ".env.local-dev", ".env.aws-mock", ".env.aws-prod"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
