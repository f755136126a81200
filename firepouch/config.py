"""
Configuration management for Firepouch.

Configuration is read from environment variables; callers may also build
the dataclasses directly (tests do). Each section is a frozen dataclass
with a from_env() classmethod, aggregated by FirepouchConfig.

Invariants:
    - All settings have sensible defaults for local development
    - Invalid numeric or list values raise ConfigurationError, never ValueError
    - Secrets (private keys, AWS secret) are never logged

How to change safely:
    - Add new settings with defaults that keep existing behaviour
    - Keep env variable names stable; they are part of the CLI contract
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 250


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", setting=name)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_name_list(raw: str | None) -> tuple[str, ...] | None:
    """Parse a comma separated list, dropping blanks. None stays None."""
    if raw is None:
        return None
    names = tuple(part.strip() for part in raw.split(",") if part.strip())
    return names


@dataclass(frozen=True)
class StoreConfig:
    """Local document store configuration.

    Attributes:
        root_dir: Directory that relative store names resolve against
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
        index_collection_name: Create the collection_name secondary index
        recreate_yield_ms: Pause between destroy and reopen in recreate()
    """

    root_dir: str = field(default_factory=os.getcwd)
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB
    index_collection_name: bool = True
    recreate_yield_ms: int = 1

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load configuration from environment variables."""
        return cls(
            root_dir=os.getenv("FIREPOUCH_ROOT_DIR") or os.getcwd(),
            wal_mode=_env_bool("FIREPOUCH_SQLITE_WAL_MODE", True),
            busy_timeout_ms=_env_int("FIREPOUCH_SQLITE_BUSY_TIMEOUT_MS", 5000),
            cache_size_pages=_env_int("FIREPOUCH_SQLITE_CACHE_SIZE", -64000),
            index_collection_name=_env_bool("FIREPOUCH_INDEX_COLLECTION_NAME", True),
            recreate_yield_ms=_env_int("FIREPOUCH_RECREATE_YIELD_MS", 1),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Backup/restore selection settings.

    Attributes:
        batch_size: Page size used against the remote and the local index
        collections: Explicit include list (None = all remote / metadata)
        exclude: Collections never processed
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    collections: tuple[str, ...] | None = None
    exclude: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables."""
        return cls(
            batch_size=_env_int("FIREPOUCH_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            collections=parse_name_list(os.getenv("FIREPOUCH_COLLECTIONS")),
            exclude=parse_name_list(os.getenv("FIREPOUCH_COLLECTIONS_EXCLUDE")) or (),
        )


@dataclass(frozen=True)
class ArchiveConfig:
    """Archive packing configuration.

    Attributes:
        compression_level: zlib deflate level, 0 (store) to 9 (smallest)
    """

    compression_level: int = 6

    @classmethod
    def from_env(cls) -> ArchiveConfig:
        """Load configuration from environment variables."""
        return cls(
            compression_level=_env_int("FIREPOUCH_ARCHIVE_COMPRESSION_LEVEL", 6),
        )


@dataclass(frozen=True)
class FirestoreConfig:
    """Firestore connection configuration.

    Either credentials_file or client_email + private_key may be given.
    With neither, Application Default Credentials are used.
    """

    project_id: str | None = None
    database: str | None = None
    credentials_file: str | None = None
    client_email: str | None = None
    private_key: str | None = None

    @classmethod
    def from_env(cls) -> FirestoreConfig:
        """Load configuration from environment variables."""
        private_key = os.getenv("FIRESTORE_PRIVATE_KEY")
        if private_key:
            private_key = private_key.replace("\\n", "\n")
        return cls(
            project_id=os.getenv("FIRESTORE_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT"),
            database=os.getenv("FIRESTORE_DATABASE"),
            credentials_file=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            client_email=os.getenv("FIRESTORE_CLIENT_EMAIL"),
            private_key=private_key,
        )

    @property
    def has_inline_credentials(self) -> bool:
        return bool(self.client_email and self.private_key)


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for uploading and downloading archives.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        backup_prefix: Key prefix prepended to remote keys
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str | None = None
    region: str = "us-east-1"
    endpoint_url: str | None = None
    backup_prefix: str = ""
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            backup_prefix=os.getenv("S3_BACKUP_PREFIX", ""),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class FirepouchConfig:
    """Complete configuration, aggregating every section."""

    store: StoreConfig = field(default_factory=StoreConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    firestore: FirestoreConfig = field(default_factory=FirestoreConfig)
    s3: S3Config = field(default_factory=S3Config)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> FirepouchConfig:
        """Load complete configuration from environment variables.

        Raises:
            ConfigurationError: If a value is missing or invalid.
        """
        config = cls(
            store=StoreConfig.from_env(),
            backup=BackupConfig.from_env(),
            archive=ArchiveConfig.from_env(),
            firestore=FirestoreConfig.from_env(),
            s3=S3Config.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        if self.backup.batch_size <= 0:
            raise ConfigurationError(
                f"FIREPOUCH_BATCH_SIZE must be positive, got {self.backup.batch_size}",
                setting="FIREPOUCH_BATCH_SIZE",
            )
        if not 0 <= self.archive.compression_level <= 9:
            raise ConfigurationError(
                "FIREPOUCH_ARCHIVE_COMPRESSION_LEVEL must be between 0 and 9",
                setting="FIREPOUCH_ARCHIVE_COMPRESSION_LEVEL",
            )
        if self.store.recreate_yield_ms < 0:
            raise ConfigurationError(
                "FIREPOUCH_RECREATE_YIELD_MS must not be negative",
                setting="FIREPOUCH_RECREATE_YIELD_MS",
            )
        if self.observability.log_format not in ("json", "text"):
            raise ConfigurationError(
                f"LOG_FORMAT must be 'json' or 'text', got {self.observability.log_format!r}",
                setting="LOG_FORMAT",
            )
        if bool(self.firestore.client_email) != bool(self.firestore.private_key):
            raise ConfigurationError(
                "FIRESTORE_CLIENT_EMAIL and FIRESTORE_PRIVATE_KEY must be set together",
                setting="FIRESTORE_PRIVATE_KEY",
            )

        if not os.path.isdir(self.store.root_dir):
            logger.warning(
                f"Store root directory does not exist: {self.store.root_dir}. "
                "It will be created on first backup."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Firepouch configuration loaded",
            extra={
                "root_dir": self.store.root_dir,
                "batch_size": self.backup.batch_size,
                "collections": list(self.backup.collections)
                if self.backup.collections is not None
                else None,
                "exclude": list(self.backup.exclude),
                "firestore_project": self.firestore.project_id,
                "firestore_credentials": "inline"
                if self.firestore.has_inline_credentials
                else self.firestore.credentials_file,
                "s3_bucket": self.s3.bucket,
                "compression_level": self.archive.compression_level,
                "log_level": self.observability.log_level,
            },
        )
