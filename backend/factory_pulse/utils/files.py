# backend/factory_pulse/utils/files.py
import mimetypes
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def unique_filename(original_name: str) -> str:
    """Random file name that keeps the original extension"""
    return f"{uuid4()}{Path(original_name or '').suffix.lower()}"


def safe_stem(original_name: str) -> str:
    """File stem reduced to characters that are safe in a storage path"""
    stem = Path(original_name or "").stem
    cleaned = _UNSAFE_CHARS.sub("_", stem).strip("._")
    return cleaned or "file"


def versioned_filename(original_name: str, version_number: int) -> str:
    """`drawing.pdf`, 3 -> `drawing_v3.pdf`"""
    return f"{safe_stem(original_name)}_v{version_number}{Path(original_name or '').suffix.lower()}"


def guess_mime_type(file_name: str, declared: Optional[str] = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(file_name or "")
    return guessed or "application/octet-stream"


def get_relative_path(absolute_path: Path, base_path: Path) -> str:
    """Convert absolute path to relative path for database storage"""
    absolute_path = Path(absolute_path).absolute()
    base_path = Path(base_path).absolute()
    # POSIX separators so stored paths do not depend on the host
    return absolute_path.relative_to(base_path).as_posix()
