"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def parse_connection_string(value: str) -> dict[str, str]:
    """Split a ``Key=Value;Key=Value`` storage connection string.

    Only the first ``=`` separates key from value, so SAS tokens survive intact.
    """
    parts: dict[str, str] = {}
    for segment in value.split(";"):
        segment = segment.strip()
        if not segment or "=" not in segment:
            continue
        key, _, val = segment.partition("=")
        parts[key.strip()] = val.strip()
    return parts


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Autotune"
    debug: bool = False

    # Job/settings tables (postgresql+psycopg for psycopg3)
    database_url: str = "sqlite:///./autotune.db"
    db_connect_timeout: int = 10  # seconds

    # Shared secret the batch job presents on its completion callback
    results_callback_key: str = ""

    # Blob storage: "BlobEndpoint=https://...;SharedAccessSignature=sv=..."
    storage_connection_string: str = ""

    # Compute backend (Azure Batch)
    batch_account_url: str = ""
    batch_account_name: str = ""
    batch_account_key: str = ""
    batch_api_version: str = "2024-07-01.20.0"

    # SendGrid
    sendgrid_api_key: str = ""
    sendgrid_from_address: str = ""

    # Outbound HTTP
    http_timeout: float = 30.0

    # Attachment bounds: oversized blobs are skipped, the rest truncated at max_count
    attachment_max_count: int = 20
    attachment_max_bytes: int = 10 * 1024 * 1024

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        raw_url = os.getenv("DATABASE_URL", self.database_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.results_callback_key = os.getenv("RESULTS_CALLBACK_KEY", "")
        self.storage_connection_string = os.getenv("STORAGE_CONNECTION_STRING", "")

        self.batch_account_url = os.getenv("BATCH_ACCOUNT_URL", "").rstrip("/")
        self.batch_account_name = os.getenv("BATCH_ACCOUNT_NAME", "")
        self.batch_account_key = os.getenv("BATCH_ACCOUNT_KEY", "")
        self.batch_api_version = os.getenv("BATCH_API_VERSION", self.batch_api_version)

        self.sendgrid_api_key = os.getenv("SENDGRID_API_KEY", "")
        self.sendgrid_from_address = os.getenv("SENDGRID_FROM_ADDRESS", "")

        self.http_timeout = float(os.getenv("HTTP_TIMEOUT", str(self.http_timeout)))
        self.attachment_max_count = int(
            os.getenv("ATTACHMENT_MAX_COUNT", str(self.attachment_max_count))
        )
        self.attachment_max_bytes = int(
            os.getenv("ATTACHMENT_MAX_BYTES", str(self.attachment_max_bytes))
        )

    @property
    def blob_endpoint(self) -> str:
        """Blob service endpoint from the storage connection string."""
        return parse_connection_string(self.storage_connection_string).get("BlobEndpoint", "")

    @property
    def blob_sas_token(self) -> str:
        """SAS token (without leading ``?``) from the storage connection string."""
        sas = parse_connection_string(self.storage_connection_string).get(
            "SharedAccessSignature", ""
        )
        return sas.lstrip("?")
