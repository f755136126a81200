"""
S3 blob transport.

Uploads and downloads backup archives with aiobotocore. Works against
AWS S3 and S3-compatible stores (MinIO) via S3Config.endpoint_url.

Object layout:
    s3://<bucket>/<backup_prefix>/<remote_key>

Invariants:
    - A client is opened per operation unless the transport was connected
      explicitly (connect() / async with)
    - Missing keys raise NotFoundError; other S3 failures raise RemoteError
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..errors import ConfigurationError, NotFoundError, RemoteError

logger = logging.getLogger(__name__)

MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


class S3Transport:
    """BlobTransport backed by S3.

    Example:
        >>> async with S3Transport(S3Config.from_env()) as transport:
        ...     await transport.upload("/tmp/backup.zip", "2024-01-01.zip")
    """

    def __init__(self, s3_config: S3Config) -> None:
        """Initialize the transport.

        Raises:
            ConfigurationError: If no bucket is configured
        """
        if not s3_config.bucket:
            raise ConfigurationError("S3_BUCKET is required for cloud backups", setting="S3_BUCKET")
        self.s3_config = s3_config
        self._session = None
        self._s3_ctx = None
        self._s3_client = None

    def full_key(self, remote_key: str) -> str:
        prefix = self.s3_config.backup_prefix.strip("/")
        key = remote_key.lstrip("/")
        return f"{prefix}/{key}" if prefix else key

    async def connect(self) -> None:
        """Initialize S3 client."""
        if self._s3_client is not None:
            return
        self._session = get_session()

        client_kwargs: dict[str, Any] = {
            "region_name": self.s3_config.region,
        }

        if self.s3_config.endpoint_url:
            client_kwargs["endpoint_url"] = self.s3_config.endpoint_url

        if self.s3_config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.s3_config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.s3_config.secret_access_key

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()

    async def close(self) -> None:
        """Close S3 client."""
        if self._s3_client:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None
            self._s3_ctx = None

    async def __aenter__(self) -> S3Transport:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def upload(self, local_file: str | Path, remote_key: str) -> str:
        path = Path(local_file)
        if not path.is_file():
            raise NotFoundError(
                f"File to upload not found: {path}", resource_type="file", resource_id=str(path)
            )
        key = self.full_key(remote_key)

        owns_client = self._s3_client is None
        await self.connect()
        try:
            with open(path, "rb") as f:
                await self._s3_client.put_object(
                    Bucket=self.s3_config.bucket,
                    Key=key,
                    Body=f.read(),
                    ContentType="application/zip",
                )
        except (ClientError, BotoCoreError) as e:
            raise RemoteError(f"Upload of {key} failed: {e}", operation="upload") from e
        finally:
            if owns_client:
                await self.close()

        logger.info(
            "Archive uploaded",
            extra={
                "bucket": self.s3_config.bucket,
                "key": key,
                "size_bytes": path.stat().st_size,
            },
        )
        return key

    async def download(self, remote_key: str, local_file: str | Path) -> Path:
        key = self.full_key(remote_key)
        path = Path(local_file)

        owns_client = self._s3_client is None
        await self.connect()
        try:
            response = await self._s3_client.get_object(
                Bucket=self.s3_config.bucket,
                Key=key,
            )
            content = await response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in MISSING_KEY_CODES:
                raise NotFoundError(
                    f"Backup not found: s3://{self.s3_config.bucket}/{key}",
                    resource_type="blob",
                    resource_id=key,
                ) from e
            raise RemoteError(f"Download of {key} failed: {e}", operation="download") from e
        except BotoCoreError as e:
            raise RemoteError(f"Download of {key} failed: {e}", operation="download") from e
        finally:
            if owns_client:
                await self.close()

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info(
            "Archive downloaded",
            extra={"bucket": self.s3_config.bucket, "key": key, "size_bytes": len(content)},
        )
        return path
