# backend/factory_pulse/config.py
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./factory_pulse.db"  # Default if not in .env

    # Storage Paths
    STORAGE_PATH: Path = Path("storage")
    DOCUMENTS_PATH: Path | None = None  # Will be set based on STORAGE_PATH
    ATTACHMENTS_PATH: Path | None = None  # Will be set based on STORAGE_PATH
    EXPORTS_PATH: Path | None = None  # Will be set based on STORAGE_PATH

    # Uploads and versions
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    VERSION_RETENTION: int = 10

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_CONSOLE: bool = True
    LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = True
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def model_post_init(self, __context) -> None:
        """Post initialization hook to set derived paths"""
        if isinstance(self.STORAGE_PATH, str):
            self.STORAGE_PATH = Path(self.STORAGE_PATH)

        self.DOCUMENTS_PATH = Path(self.DOCUMENTS_PATH) if self.DOCUMENTS_PATH else self.STORAGE_PATH / "documents"
        self.ATTACHMENTS_PATH = Path(self.ATTACHMENTS_PATH) if self.ATTACHMENTS_PATH else self.STORAGE_PATH / "approval-attachments"
        self.EXPORTS_PATH = Path(self.EXPORTS_PATH) if self.EXPORTS_PATH else self.STORAGE_PATH / "exports"

        self.create_storage_dirs()

    def create_storage_dirs(self) -> None:
        """Create necessary storage directories if they don't exist"""
        for path in [self.STORAGE_PATH, self.DOCUMENTS_PATH, self.ATTACHMENTS_PATH, self.EXPORTS_PATH]:
            path.mkdir(parents=True, exist_ok=True)


settings = Settings()
