from __future__ import annotations

import logging
import re
import time
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from campaign_data.core.errors import NotFoundError, ValidationError
from campaign_data.core.tenancy import TenantContextProvider, tenant_guard
from campaign_data.db.backend import StorageBackend
from campaign_data.schemas.common import Page
from campaign_data.schemas.documents import DocumentInput, DocumentMetadataUpdate, DocumentRead
from campaign_data.services.base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
SIGNED_URL_TTL_SECONDS = 3600
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


@runtime_checkable
class ObjectStorage(Protocol):
    """Blob store holding the uploaded files. Paths are relative to one bucket."""

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store `content` at `path` and return the stored path."""
        ...

    async def delete(self, path: str) -> bool:
        ...

    async def url_for(self, path: str, expires_in: int) -> str:
        """Time-limited download URL for `path`."""
        ...


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [a-zA-Z0-9.-] with '_'."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def _validated(model, data: Any):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {model.__name__}",
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


class DocumentService(BaseService):
    """
    Document metadata rows plus the files they describe.

    Files are stored under `<tenant_id>/<category>/<millis>-<filename>`, so
    one tenant's files never share a folder with another's.
    """

    def __init__(
        self,
        backend: StorageBackend,
        tenant_provider: TenantContextProvider,
        storage: ObjectStorage,
    ) -> None:
        super().__init__(backend, tenant_provider)
        self.documents = self.repository("documents")
        self.storage = storage

    def build_path(self, category: str, filename: str) -> str:
        tenant_id = tenant_guard(self.tenant_provider.current_tenant_id())
        stamp = int(time.time() * 1000)
        return f"{tenant_id}/{sanitize_filename(category)}/{stamp}-{sanitize_filename(filename)}"

    # PUBLIC_INTERFACE
    async def upload_document(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        metadata: DocumentInput | Mapping[str, Any],
    ) -> DocumentRead:
        """
        Store a file and create its metadata row.

        If the row cannot be created the stored file is removed again and the
        original error is re-raised.
        """
        info = _validated(DocumentInput, metadata)
        if not filename:
            raise ValidationError("filename is required")
        user_id = info.user_id or self.tenant_provider.current_user_id()
        if not user_id:
            raise ValidationError("Documents need an uploader: pass user_id or configure the active user")

        path = await self.storage.upload(
            self.build_path(info.category, filename), content, content_type or DEFAULT_CONTENT_TYPE
        )
        try:
            return await self.documents.create(
                {
                    "title": info.title,
                    "description": info.description,
                    "category": info.category,
                    "url": path,
                    "file_type": content_type or DEFAULT_CONTENT_TYPE,
                    "size_bytes": len(content),
                    "user_id": user_id,
                    "tags": list(info.tags),
                }
            )
        except Exception:
            logger.warning("Removing uploaded file %s after failed document insert", path)
            await self.storage.delete(path)
            raise

    # PUBLIC_INTERFACE
    async def update_metadata(
        self, document_id: str, changes: DocumentMetadataUpdate | Mapping[str, Any]
    ) -> DocumentRead:
        """Change title, description, category or tags. The stored file is untouched."""
        update = _validated(DocumentMetadataUpdate, changes)
        return await self.documents.update(document_id, update.model_dump(exclude_unset=True))

    # PUBLIC_INTERFACE
    async def delete_document(self, document_id: str) -> bool:
        """Remove the stored file, then the row. Raises NotFoundError for unknown ids."""
        document = await self.documents.require(document_id)
        if not await self.storage.delete(document.url):
            logger.warning("Stored file for document %s was already gone", document_id)
        deleted = await self.documents.delete(document_id)
        if not deleted:
            raise NotFoundError("documents", str(document_id))
        return True

    # PUBLIC_INTERFACE
    async def list_documents(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: str = "created_at",
        order_direction: str = "desc",
    ) -> Page[DocumentRead]:
        """List documents; `search` matches the title case-insensitively."""
        query = dict(filters or {})
        if search:
            query["title"] = {"like": search}
        return await self.documents.get_all(
            page=page, page_size=per_page, order_by=order_by, order_direction=order_direction, filters=query
        )

    async def list_by_category(self, category: str, page: int = 1, per_page: int = 10) -> Page[DocumentRead]:
        return await self.list_documents(page, per_page, filters={"category": category})

    async def list_by_tags(self, tags: list[str], page: int = 1, per_page: int = 10) -> Page[DocumentRead]:
        """Documents carrying every tag in `tags`."""
        return await self.list_documents(page, per_page, filters={"tags": {"contains": list(tags)}})

    # PUBLIC_INTERFACE
    async def signed_url(self, document_id: str, expires_in: int = SIGNED_URL_TTL_SECONDS) -> str:
        """Temporary download URL for the document's file."""
        document = await self.documents.require(document_id)
        return await self.storage.url_for(document.url, expires_in)
