"""Application configuration via environment variables.

Everything comes from MARKETWIRE_* env vars through pydantic-settings;
the JWT secret is shared with the main marketplace site, which mints the
tokens this service only verifies.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via MARKETWIRE_* env vars."""

    # Database (MySQL, async driver)
    database_url: str = "mysql+aiomysql://root:@127.0.0.1:3306/marketwire"

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    ticket_ttl_seconds: int = 60

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 3001

    # CORS
    cors_origins: list[str] = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # WebSocket upgrade gate
    admin_origins: list[str] = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]
    trusted_domain: str = ""  # e.g. "example.com" trusts https://*.example.com
    ws_check_origin: bool = True
    ws_send_timeout_seconds: float = 5.0

    # Real-time hubs
    heartbeat_interval_seconds: float = 30.0
    flush_interval_seconds: float = 2.0
    active_window_seconds: int = 300  # "active now" = seen in the last 5 min
    max_product_subscriptions: int = 500

    # Tables / snapshots
    likes_table: str = "node_product_likes"
    top_pages_snapshot_limit: int = 50

    model_config = {"env_prefix": "MARKETWIRE_"}

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "MARKETWIRE_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        return self


# Process-wide settings; tests build their own Settings(...) where needed.
settings = Settings()
