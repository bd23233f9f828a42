"""
S3Distributor - Replicates generated derivatives to an S3-compatible bucket.
"""

import logging
import os
from mimetypes import guess_type
from typing import Optional

import boto3
from botocore.config import Config

from .config import S3Config


class S3Distributor:
    """
    Uploads derivative files to S3/MinIO after they are generated.

    Callers treat every failure as best-effort; this class simply raises.
    """

    def __init__(self, config: S3Config, images_dir: str, logger: Optional[logging.Logger] = None):
        """
        Initialize distributor.

        Args:
            config: S3 configuration
            images_dir: Local cache root; keys mirror paths below it
            logger: Optional logger instance
        """
        self.config = config
        self.images_dir = os.path.abspath(images_dir)
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    def s3_key(self, path: str) -> str:
        """Object key for a local cache path."""
        path = os.path.abspath(path)
        if os.path.commonpath([path, self.images_dir]) == self.images_dir:
            rel = os.path.relpath(path, self.images_dir)
        else:
            rel = os.path.basename(path)
        rel = rel.replace(os.sep, '/')
        return f"{self.config.prefix}/{rel}".lstrip('/')

    def distribute_file(self, source: str, target: str) -> None:
        """
        Upload the local file `source` under the key derived from `target`.
        """
        key = self.s3_key(target)
        content_type, _ = guess_type(source)
        with open(source, 'rb') as f:
            self._client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=f,
                ContentType=content_type or 'application/octet-stream'
            )
        self.logger.debug(f"Uploaded {source} to s3://{self.config.bucket}/{key}")
