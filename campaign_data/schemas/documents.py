from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .common import EntityRead


class DocumentRead(EntityRead):
    """Document metadata read model."""
    title: str = Field(..., description="Document title")
    description: Optional[str] = Field(None)
    category: str = Field(..., description="Category, also used as storage sub-folder")
    url: str = Field(..., description="Object storage path")
    file_type: str = Field(..., description="MIME type")
    size_bytes: int = Field(..., ge=0)
    user_id: str = Field(..., description="Uploader")
    tags: Optional[list[str]] = Field(None)


class DocumentInput(BaseModel):
    """Metadata supplied when uploading a document."""
    title: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    description: Optional[str] = Field(None)
    tags: list[str] = Field(default_factory=list)
    user_id: Optional[str] = Field(None, description="Defaults to the current user")


class DocumentMetadataUpdate(BaseModel):
    """Editable document metadata; the stored file itself never changes."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None)
    category: Optional[str] = Field(None, min_length=1)
    tags: Optional[list[str]] = Field(None)
