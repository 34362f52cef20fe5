"""Application settings and configuration.

This module defines all configuration options for the OracleNet identity
service. Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="OracleNet Identity", alias="APP_NAME")
    app_version: str = Field(default="3.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 14,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Entity store (humans and oracles)
    database_url: str = Field(default="sqlite:///./oraclenet.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Ephemeral state store: "memory://" or a redis URL
    state_store_url: str = Field(default="memory://", alias="STATE_STORE_URL")
    nonce_ttl_seconds: int = Field(default=300, alias="NONCE_TTL_SECONDS")
    auth_request_ttl_seconds: int = Field(default=1800, alias="AUTH_REQUEST_TTL_SECONDS")
    claimed_auth_request_ttl_seconds: int = Field(
        default=60,
        alias="CLAIMED_AUTH_REQUEST_TTL_SECONDS",
    )
    birth_author_ttl_seconds: int = Field(default=3600, alias="BIRTH_AUTHOR_TTL_SECONDS")

    # Wallet sign-in
    sign_in_statement: str = Field(default="Sign in to OracleNet", alias="SIGN_IN_STATEMENT")

    # GitHub proof fetching
    github_api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    github_token: str | None = Field(default=None, alias="GITHUB_TOKEN")
    github_user_agent: str = Field(default="OracleNet-Siwer", alias="GITHUB_USER_AGENT")
    github_http_timeout_seconds: float = Field(
        default=10.0,
        alias="GITHUB_HTTP_TIMEOUT_SECONDS",
    )

    # Admin bridge
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: str | None = Field(default=None, alias="ADMIN_PASSWORD")
    admin_wallets: list[str] = Field(default_factory=list, alias="ADMIN_WALLETS")
    admin_secret_length: int = Field(default=32, alias="ADMIN_SECRET_LENGTH")

    # Delegated authorization
    authorize_require_req_id_in_message: bool = Field(
        default=False,
        alias="AUTHORIZE_REQUIRE_REQ_ID_IN_MESSAGE",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:5174",
            "http://localhost:5175",
        ],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def admin_wallet_set(self) -> set[str]:
        """Return the allow-listed admin wallets, lowercased."""
        return {wallet.lower() for wallet in self.admin_wallets}


settings = Settings()  # type: ignore[call-arg]
