"""Document domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DOCUMENT_TYPES = {"general", "minutes", "contract", "regulation", "budget", "insurance", "invoice"}
VISIBILITIES = {"condominos", "admin", "fraction"}


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    parent_folder_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v or "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError("Folder name cannot contain slashes")
        return v


class FolderResponse(BaseModel):
    id: int
    condominium_id: int
    parent_folder_id: Optional[int] = None
    name: str
    path: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentMetadata(BaseModel):
    """Form fields sent along with an upload"""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    folder: Optional[str] = None
    document_type: str = "general"
    visibility: str = "condominos"
    fraction_id: Optional[int] = None
    assembly_id: Optional[int] = None
    parent_document_id: Optional[int] = None

    @field_validator("document_type")
    @classmethod
    def validate_type(cls, v):
        if v not in DOCUMENT_TYPES:
            raise ValueError(f"document_type must be one of {', '.join(sorted(DOCUMENT_TYPES))}")
        return v

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v):
        if v not in VISIBILITIES:
            raise ValueError("visibility must be condominos, admin or fraction")
        return v

    @field_validator("folder")
    @classmethod
    def normalize_folder(cls, v):
        if v is None:
            return v
        return "/".join(part for part in v.strip().split("/") if part) or None


class DocumentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    folder: Optional[str] = None
    visibility: Optional[str] = None

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v):
        if v is not None and v not in VISIBILITIES:
            raise ValueError("visibility must be condominos, admin or fraction")
        return v


class DocumentResponse(BaseModel):
    id: int
    condominium_id: int
    parent_document_id: Optional[int] = None
    assembly_id: Optional[int] = None
    fraction_id: Optional[int] = None
    folder: Optional[str] = None
    title: str
    description: Optional[str] = None
    file_name: str
    file_size: int
    mime_type: Optional[str] = None
    document_type: str
    visibility: str
    version: int
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
