"""
S3 object store: the copy, delete and read calls a file move needs.
"""

import logging
from typing import TYPE_CHECKING, Optional

from botocore.exceptions import BotoCoreError, ClientError

from invoice_mover.errors import ValidationError, error_code, NOT_FOUND_CODES, translate_aws_error

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


class S3ObjectStore:
    """Object store backed by an S3 client."""

    def __init__(self, s3_client: "S3Client"):
        self.s3 = s3_client

    def copy(self, container: str, source_key: str, destination_key: str) -> None:
        """Copy an object to a new key inside the same bucket."""
        _verify_not_empty(container=container, source_key=source_key, destination_key=destination_key)
        logger.debug(f"Copying s3://{container}/{source_key} -> {destination_key}")
        try:
            self.s3.copy_object(
                Bucket=container,
                Key=destination_key,
                CopySource={"Bucket": container, "Key": source_key},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Can't copy file {source_key}: {str(e)}")
            raise translate_aws_error(e, f"Can't copy file {source_key} in {container}")
        logger.debug(f"File {source_key} successfully copied to {destination_key}")

    def delete(self, container: str, key: str) -> None:
        _verify_not_empty(container=container, key=key)
        logger.debug(f"Deleting file {key} from S3 bucket {container}...")
        try:
            self.s3.delete_object(Bucket=container, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Can't delete file {key}: {str(e)}")
            raise translate_aws_error(e, f"Can't delete file {key} in {container}")
        logger.debug(f"File {key} successfully deleted from {container}")

    def get_content(self, container: str, key: str, encoding: str = "utf-8") -> str:
        """Read an object's body as text."""
        _verify_not_empty(container=container, key=key)
        try:
            response = self.s3.get_object(Bucket=container, Key=key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading s3://{container}/{key}: {str(e)}")
            raise translate_aws_error(e, f"Can't read file {key} in {container}")
        try:
            return body.decode(encoding)
        except UnicodeDecodeError as e:
            raise ValidationError(f"File {key} is not {encoding} text: {e}")

    def exists(self, container: str, key: str) -> bool:
        """Check if an object exists."""
        try:
            self.s3.head_object(Bucket=container, Key=key)
            return True
        except ClientError as e:
            if error_code(e) in NOT_FOUND_CODES:
                return False
            raise translate_aws_error(e, f"Can't check file {key} in {container}")
        except BotoCoreError as e:
            raise translate_aws_error(e, f"Can't check file {key} in {container}")


def _verify_not_empty(**values: Optional[str]) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        logger.error(f"Can't access S3 object, missing {missing}: {values}")
        raise ValidationError(f"Can't access S3 object, missing {', '.join(missing)}")
