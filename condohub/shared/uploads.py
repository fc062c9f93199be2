"""Validation and storage of uploaded files under STORAGE_PATH"""

import logging
import os
import uuid
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 20 * 1024 * 1024  # 20MB
DANGEROUS_CHARS = ["..", "/", "\\", "<", ">", ":", '"', "|", "?", "*"]


def check_upload(file_name: Optional[str], content: bytes) -> None:
    if not file_name:
        raise HTTPException(status_code=400, detail="A file name is required")
    for char in DANGEROUS_CHARS:
        if char in file_name:
            logger.warning(f"❌ Dangerous character '{char}' detected in filename: '{file_name}'")
            raise HTTPException(status_code=400, detail=f"Invalid filename - contains dangerous character '{char}'")
    if len(file_name) > 255:
        raise HTTPException(status_code=400, detail="Filename too long - maximum 255 characters")
    if not content:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds 20MB limit. Your file is {len(content) / (1024 * 1024):.2f}MB.",
        )


def store_upload(storage_path: str, directory: str, file_name: str, content: bytes) -> tuple[str, str]:
    """
    Write an already checked upload to disk.

    Returns:
        (path relative to storage_path, absolute path)
    """
    relative_path = os.path.join(directory, f"{uuid.uuid4().hex}_{file_name}")
    full_path = os.path.join(storage_path, relative_path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "wb") as fh:
        fh.write(content)
    return relative_path, full_path
