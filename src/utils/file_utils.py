"""File helpers for uploads."""

import os
import re

from models.enums import FileTypeEnum

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """
    Reduce a client-supplied filename to a safe storage key segment.

    Directory components are dropped and unusual characters replaced by `_`.
    """
    base = os.path.basename((filename or "").replace("\\", "/"))
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "upload"


def is_allowed_file(filename: str, allowed_types: list) -> bool:
    file_type = FileTypeEnum.from_filename(filename)
    return file_type is not None and file_type.value in allowed_types
