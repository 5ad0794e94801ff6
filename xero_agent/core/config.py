"""Application configuration using Pydantic Settings."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Xero Agent Tools"
    debug: bool = False

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Xero API
    xero_api_url: str = "https://api.xero.com/api.xro/2.0"
    xero_identity_url: str = "https://identity.xero.com/connect/token"
    xero_connections_url: str = "https://api.xero.com/connections"
    xero_scopes: str = (
        "accounting.transactions accounting.contacts accounting.settings "
        "accounting.reports.read"
    )

    # Bearer token mode - empty string means not configured
    xero_bearer_token: str = ""
    xero_tenant_id: str = ""

    # Custom connection (client credentials) mode
    xero_client_id: str = ""
    xero_client_secret: str = ""

    # HTTP behaviour
    request_timeout: float = 30.0  # seconds
    max_retries: int = 3

    # Whether the actual P&L is requested with toDate and de-cumulated
    # client-side. When False, toDate is omitted and values are used as-is.
    actual_report_cumulative: bool = True


# Create settings instance
settings = Settings()
