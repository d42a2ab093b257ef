# backend/factory_pulse/services/storage.py
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from fastapi import UploadFile

from ..config import settings
from ..errors import ValidationFailedError
from ..utils.files import get_relative_path, guess_mime_type
from ..utils.logging import service_logger

CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    relative_path: str
    file_name: str
    file_size: int
    mime_type: str


class StorageService:
    """Files live under STORAGE_PATH; the database only keeps relative paths."""

    def resolve(self, relative_path: str) -> Path:
        root = Path(settings.STORAGE_PATH).absolute()
        path = (root / relative_path).absolute()
        # Reject paths that climb out of the storage root
        if root != path and root not in path.parents:
            raise ValidationFailedError(f"Invalid storage path: {relative_path}")
        return path

    def relative_path(self, absolute_path: Path) -> str:
        return get_relative_path(absolute_path, settings.STORAGE_PATH)

    def exists(self, relative_path: Optional[str]) -> bool:
        return bool(relative_path) and self.resolve(relative_path).is_file()

    async def save_upload(self, upload_file: UploadFile, relative_path: str) -> StoredFile:
        """Write an upload to `relative_path`, enforcing MAX_UPLOAD_SIZE"""
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        try:
            with target.open("wb") as buffer:
                while True:
                    chunk = await upload_file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > settings.MAX_UPLOAD_SIZE:
                        raise ValidationFailedError(
                            f"File {upload_file.filename} exceeds the maximum upload size of "
                            f"{settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB"
                        )
                    buffer.write(chunk)
        except Exception:
            target.unlink(missing_ok=True)
            raise

        stored = StoredFile(
            relative_path=relative_path,
            file_name=upload_file.filename or target.name,
            file_size=size,
            mime_type=guess_mime_type(upload_file.filename, upload_file.content_type),
        )
        service_logger.info("Stored uploaded file", extra={
            "path": relative_path,
            "file_size": size,
            "mime_type": stored.mime_type
        })
        return stored

    def save_bytes(self, content: bytes, relative_path: str) -> Path:
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return target

    def delete_file(self, relative_path: Optional[str]) -> bool:
        """Delete a stored file. Missing files and OS errors are logged, not raised."""
        if not relative_path:
            return False
        try:
            path = self.resolve(relative_path)
            if not path.exists():
                service_logger.warning("File to delete does not exist", extra={"path": relative_path})
                return False
            path.unlink()
            service_logger.info(f"Deleted file: {relative_path}")
            return True
        except (OSError, ValidationFailedError) as e:
            service_logger.error("Error deleting file", extra={
                "path": relative_path,
                "error": str(e)
            })
            return False

    def delete_files(self, relative_paths: Iterable[Optional[str]]) -> int:
        deleted = 0
        for relative_path in set(p for p in relative_paths if p):
            if self.delete_file(relative_path):
                deleted += 1
        return deleted


storage_service = StorageService()
