"""
Main settings object.
"""

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import URL

from studygroup.core.tokens import SigningKeys

from .managers import AsyncSessionManager, SyncSessionManager


class Settings(BaseSettings):
    database_type: Literal["sqlite", "postgres"] = "sqlite"
    database_user: str | None = None
    database_password: str | None = None
    database_port: int | None = None
    database_host: str | None = None
    database_db: str = "studygroup.db"

    database_echo: bool = False

    # Outside production, 500 responses carry the traceback.
    environment: Literal["development", "production"] = "development"

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Email addresses that receive the 'admin' grant when they register.
    create_admin_users: list[str] = []

    key_pair_type: str = "Ed25519"
    key_password: str = "CHANGEME"
    # When either file is missing, an ephemeral key pair is generated at
    # startup and all tokens are invalidated on restart.
    public_key_filename: Path | None = None  # Suggest /data/public_key.pem
    private_key_filename: Path | None = None  # Suggest /data/private_key.pem

    access_key_expiry: timedelta = timedelta(hours=8)

    google_client_id: str | None = None
    google_token_info_url: str = "https://oauth2.googleapis.com/tokeninfo"

    calendar_provider: Literal["none", "mock", "google"] = "none"
    google_calendar_client_id: str | None = None
    google_calendar_client_secret: str | None = None
    google_calendar_refresh_token: str | None = None
    google_calendar_id: str = "primary"
    calendar_timezone: str = "Asia/Manila"
    calendar_request_timeout: float = 10.0

    model_config = SettingsConfigDict(env_prefix="STUDYGROUP_", env_file=".env")

    @property
    def sync_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite"
            case "postgres":
                return "postgresql+psycopg"
            case _:
                raise ValueError

    @property
    def async_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite+aiosqlite"
            case "postgres":
                return "postgresql+asyncpg"
            case _:
                raise ValueError

    @property
    def sync_uri(self) -> URL:
        return URL.create(
            drivername=self.sync_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def sync_manager(self) -> SyncSessionManager:
        return SyncSessionManager(connection_url=self.sync_uri, echo=self.database_echo)

    @property
    def async_uri(self) -> URL:
        return URL.create(
            drivername=self.async_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def async_manager(self) -> AsyncSessionManager:
        return AsyncSessionManager(
            connection_url=self.async_uri, echo=self.database_echo
        )

    def signing_keys(self) -> SigningKeys:
        if (
            self.public_key_filename is not None
            and self.private_key_filename is not None
            and self.public_key_filename.exists()
            and self.private_key_filename.exists()
        ):
            return SigningKeys(
                key_pair_type=self.key_pair_type,
                key_password=self.key_password,
                public_key=self.public_key_filename.read_bytes(),
                private_key=self.private_key_filename.read_bytes(),
            )

        return SigningKeys.generate(
            key_pair_type=self.key_pair_type, key_password=self.key_password
        )
