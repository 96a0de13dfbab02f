from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Read-only scopes requested during install
SHOPIFY_SCOPES: List[str] = [
    "read_products",
    "read_orders",
    "read_customers",
    "read_inventory",
    "read_fulfillments",
    "read_shipping",
    "read_analytics",
]


class Settings(BaseSettings):
    """
    Application settings, read from the environment or a local .env file
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)

    shopify_api_key: str = Field("", description="App client id from the Partner dashboard")
    shopify_api_secret: str = Field("", description="App client secret, also the OAuth HMAC key")
    shopify_api_version: str = Field("2024-04")
    shopify_timeout: float = Field(30.0, description="Seconds before an Admin API call is abandoned")

    host: str = Field("http://localhost:8000", description="Public URL this app is reachable at")
    port: int = Field(8000)

    database_url: str = Field("mongodb://localhost:27017")
    database_name: str = Field("shopify_bi_gateway")

    # Reserved for signing API responses; not used yet
    api_secret_key: str = Field("")

    log_level: str = Field("INFO")

    @property
    def public_host(self) -> str:
        return self.host.rstrip("/")

    @property
    def redirect_uri(self) -> str:
        return f"{self.public_host}/auth/callback"


@lru_cache
def get_settings() -> Settings:
    return Settings()
