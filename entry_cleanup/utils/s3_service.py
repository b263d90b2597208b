import boto3
import logging
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import Settings
from ..errors import ConfigError, CredentialsError, StorageError

logger = logging.getLogger(__name__)


def build_client_config(settings: Settings) -> Config:
    """Addressing style and retry policy for the S3 client"""
    return Config(
        s3={"addressing_style": settings.addressing_style},
        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
    )


def resolve_credentials(settings: Settings, session: Optional[boto3.session.Session] = None):
    """Make sure the SDK credential chain yields something before touching any bucket"""
    try:
        session = session or boto3.session.Session(region_name=settings.region)
        credentials = session.get_credentials()
    except BotoCoreError as e:
        raise CredentialsError(f"Error resolving AWS credentials: {str(e)}")
    if credentials is None:
        raise CredentialsError("Unable to resolve AWS credentials from environment, profile or instance role")
    return credentials


class S3Service:
    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        if client is None:
            try:
                client = boto3.client(
                    "s3",
                    region_name=settings.region,
                    endpoint_url=settings.endpoint_url,
                    config=build_client_config(settings),
                )
            except (ValueError, BotoCoreError) as e:
                # botocore rejects malformed endpoints and region names here
                raise ConfigError(f"Error creating S3 client: {str(e)}")
        self.s3_client = client
        logger.info(
            f"Initialized S3 service (addressing style: {settings.addressing_style}, "
            f"endpoint: {settings.endpoint_url or 'default'})"
        )

    def iter_pages(self, bucket: str, prefix: str) -> Iterator[List[Dict]]:
        """Yield the objects under a prefix one listing page at a time.

        The paginator fetches lazily, so the caller may delete a page's
        objects before asking for the next one.
        """
        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                yield page.get("Contents", [])
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list objects under {prefix}: {str(e)}")

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> List[Tuple[str, str]]:
        """Bulk delete in quiet mode; returns (key, message) for each key the store refused"""
        if not keys:
            return []
        try:
            response = self.s3_client.delete_objects(
                Bucket=bucket,
                Delete={
                    "Objects": [{"Key": key} for key in keys],
                    "Quiet": True,
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete objects: {str(e)}")

        return [
            (error.get("Key", ""), f"{error.get('Code', 'Error')}: {error.get('Message', '')}")
            for error in response.get("Errors", [])
        ]
