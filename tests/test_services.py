"""Tests for the demand, document and supporter services over the in-memory backend."""

from __future__ import annotations

import re
from typing import Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from campaign_data.core.errors import NotFoundError, StorageError, ValidationError
from campaign_data.core.tenancy import StaticTenantContext
from campaign_data.schemas.demands import DemandStatus, StatusCount
from campaign_data.services.demands import DemandService, status_label
from campaign_data.services.documents import DocumentService, ObjectStorage, sanitize_filename
from campaign_data.services.supporters import SupporterService


class FakeStorage:
    """ObjectStorage keeping blobs in a dict."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        self.files[path] = content
        return path

    async def delete(self, path: str) -> bool:
        self.deleted.append(path)
        return self.files.pop(path, None) is not None

    async def url_for(self, path: str, expires_in: int) -> str:
        return f"https://files.example.org/{path}?expires={expires_in}"


# ---------------------------------------------------------------------------
# Demands
# ---------------------------------------------------------------------------


@pytest.fixture
def demands(backend, tenant_a) -> DemandService:
    return DemandService(backend, tenant_a)


@pytest_asyncio.fixture
async def seeded_demands(demands: DemandService) -> dict[str, str]:
    ids = {}
    for title, status, category in (
        ("Fix street lights", "Open", "infrastructure"),
        ("New health clinic", "Open", "health"),
        ("School roof", "Done", "education"),
    ):
        row = await demands.demands.create({"title": title, "status": status, "category": category})
        ids[title] = row.id
    return ids


class TestDemandStatus:
    """Status keys and stored labels."""

    @pytest.mark.parametrize(
        "key, label",
        [
            ("open", "Open"),
            ("in_analysis", "In Analysis"),
            ("in_progress", "In Progress"),
            ("done", "Done"),
            (DemandStatus.CANCELLED, "Cancelled"),
        ],
    )
    def test_labels(self, key, label) -> None:
        assert status_label(key) == label

    def test_unknown_key(self) -> None:
        with pytest.raises(ValidationError):
            status_label("archived")


class TestDemandService:
    """Listing, updates and the status summary."""

    @pytest.mark.asyncio
    async def test_filter_by_status_key(self, seeded_demands, demands: DemandService) -> None:
        page = await demands.list_demands(filters={"status": "open"}, order_by="title", order_direction="asc")
        assert [d.title for d in page.items] == ["Fix street lights", "New health clinic"]
        assert page.total_count == 2

    @pytest.mark.asyncio
    async def test_filter_by_several_statuses(self, seeded_demands, demands: DemandService) -> None:
        page = await demands.list_demands(filters={"status": ["open", "done"], "category": "education"})
        assert [d.title for d in page.items] == ["School roof"]

    @pytest.mark.asyncio
    async def test_search_matches_title(self, seeded_demands, demands: DemandService) -> None:
        page = await demands.list_demands(search="HEALTH")
        assert [d.title for d in page.items] == ["New health clinic"]

    @pytest.mark.asyncio
    async def test_empty_filter_values_are_skipped(self, seeded_demands, demands: DemandService) -> None:
        page = await demands.list_demands(filters={"status": None, "category": ""})
        assert page.total_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filters", [{"status": "archived"}, {"region": "north"}])
    async def test_invalid_filters(self, demands: DemandService, filters) -> None:
        with pytest.raises(ValidationError):
            await demands.list_demands(filters=filters)

    @pytest.mark.asyncio
    async def test_missing_demand_with_updates_is_none(self, demands: DemandService) -> None:
        assert await demands.get_demand_with_updates("missing") is None

    @pytest.mark.asyncio
    async def test_updates_are_attached_newest_first(self, seeded_demands, demands: DemandService) -> None:
        target = seeded_demands["Fix street lights"]
        await demands.add_update(target, "Crew scheduled")
        await demands.add_update(target, "Lights replaced", new_status="done")
        await demands.add_update(seeded_demands["School roof"], "Unrelated note")

        demand = await demands.get_demand_with_updates(target)
        assert demand is not None
        assert demand.status == "Done"
        assert {u.message for u in demand.updates} == {"Crew scheduled", "Lights replaced"}
        stamps = [u.created_at for u in demand.updates]
        assert stamps == sorted(stamps, reverse=True)
        assert all(u.author_id == "user-a" for u in demand.updates)

    @pytest.mark.asyncio
    async def test_add_update_validation(self, seeded_demands, demands: DemandService) -> None:
        with pytest.raises(ValidationError):
            await demands.add_update(seeded_demands["School roof"], "   ")
        with pytest.raises(ValidationError):
            await demands.add_update(seeded_demands["School roof"], "note", new_status="archived")
        with pytest.raises(NotFoundError):
            await demands.add_update("missing", "note")

    @pytest.mark.asyncio
    async def test_status_summary(self, seeded_demands, demands: DemandService) -> None:
        assert await demands.status_summary() == [
            StatusCount(status="Done", count=1),
            StatusCount(status="Open", count=2),
        ]

    @pytest.mark.asyncio
    async def test_other_tenant_sees_nothing(self, seeded_demands, backend, tenant_b) -> None:
        other = DemandService(backend, tenant_b)
        assert (await other.list_demands()).total_count == 0
        assert await other.status_summary() == []
        assert await other.get_demand_with_updates(seeded_demands["School roof"]) is None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def documents(backend, tenant_a, storage: FakeStorage) -> DocumentService:
    return DocumentService(backend, tenant_a, storage)


async def upload(service: DocumentService, title: str = "Flyer", category: str = "Campaign Material", **extra):
    metadata = {"title": title, "category": category, **extra}
    return await service.upload_document(b"%PDF-1.4", "flyer final!.pdf", "application/pdf", metadata)


class TestDocumentService:
    """Blob and row lifecycle of documents."""

    def test_sanitize_filename(self) -> None:
        assert sanitize_filename("relatório 2024 (v2).pdf") == "relat_rio_2024__v2_.pdf"

    def test_fake_storage_satisfies_protocol(self, storage: FakeStorage) -> None:
        assert isinstance(storage, ObjectStorage)

    @pytest.mark.asyncio
    async def test_upload_stores_blob_under_tenant_folder(self, documents: DocumentService, storage) -> None:
        document = await upload(documents, tags=["print"])

        assert re.fullmatch(r"tenant-a/Campaign_Material/\d+-flyer_final_\.pdf", document.url)
        assert storage.files[document.url] == b"%PDF-1.4"
        assert document.size_bytes == len(b"%PDF-1.4")
        assert document.file_type == "application/pdf"
        assert document.user_id == "user-a"
        assert document.tags == ["print"]

    @pytest.mark.asyncio
    async def test_failed_insert_removes_blob(self, documents: DocumentService, storage) -> None:
        documents.documents.create = AsyncMock(side_effect=StorageError("Could not create documents"))
        with pytest.raises(StorageError):
            await upload(documents)
        assert storage.files == {}
        assert len(storage.deleted) == 1

    @pytest.mark.asyncio
    async def test_upload_needs_an_uploader(self, backend, storage) -> None:
        anonymous = DocumentService(backend, StaticTenantContext("tenant-a"), storage)
        with pytest.raises(ValidationError):
            await upload(anonymous)
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_invalid_metadata(self, documents: DocumentService, storage) -> None:
        with pytest.raises(ValidationError) as info:
            await upload(documents, title="")
        assert info.value.details
        assert storage.files == {}

    @pytest.mark.asyncio
    async def test_update_metadata_keeps_file(self, documents: DocumentService) -> None:
        document = await upload(documents)
        updated = await documents.update_metadata(document.id, {"title": "Final flyer", "tags": ["final"]})
        assert updated.title == "Final flyer"
        assert updated.tags == ["final"]
        assert updated.url == document.url

    @pytest.mark.asyncio
    async def test_delete_removes_blob_then_row(self, documents: DocumentService, storage) -> None:
        document = await upload(documents)
        assert await documents.delete_document(document.id) is True
        assert storage.deleted == [document.url]
        assert await documents.documents.get_by_id(document.id) is None
        with pytest.raises(NotFoundError):
            await documents.delete_document(document.id)

    @pytest.mark.asyncio
    async def test_listing_by_category_and_tags(self, documents: DocumentService) -> None:
        await upload(documents, title="Flyer", tags=["print", "2024"])
        await upload(documents, title="Poster", tags=["print"])
        await upload(documents, title="Budget", category="Finance", tags=["2024"])

        by_category = await documents.list_by_category("Finance")
        assert [d.title for d in by_category.items] == ["Budget"]

        by_tags = await documents.list_by_tags(["print", "2024"])
        assert [d.title for d in by_tags.items] == ["Flyer"]

        searched = await documents.list_documents(search="post")
        assert [d.title for d in searched.items] == ["Poster"]

    @pytest.mark.asyncio
    async def test_signed_url(self, documents: DocumentService) -> None:
        document = await upload(documents)
        url = await documents.signed_url(document.id, expires_in=60)
        assert url == f"https://files.example.org/{document.url}?expires=60"


# ---------------------------------------------------------------------------
# Supporters
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def supporters(backend, tenant_a) -> SupporterService:
    service = SupporterService(backend, tenant_a)
    for name, city, state, level, tags, leader in (
        ("Ana Lima", "Campo Grande", "MS", "high", ["health"], None),
        ("Bruno Costa", "Dourados", "MS", "low", ["sports", "health"], "leader-1"),
        ("Carla Dias", "Cuiabá", "MT", "medium", [], "leader-1"),
    ):
        await service.supporters.create(
            {
                "name": name,
                "address": {"city": city, "state": state},
                "engagement_level": level,
                "tags": tags,
                "leader_id": leader,
            }
        )
    return service


async def supporter_names(service: SupporterService, search: Optional[str] = None, **filters) -> list[str]:
    page = await service.list_supporters(search=search, filters=filters)
    return [s.name for s in page.items]


class TestSupporterService:
    """Supporter filters."""

    @pytest.mark.asyncio
    async def test_default_order_is_name(self, supporters: SupporterService) -> None:
        assert await supporter_names(supporters) == ["Ana Lima", "Bruno Costa", "Carla Dias"]

    @pytest.mark.asyncio
    async def test_address_filters(self, supporters: SupporterService) -> None:
        assert await supporter_names(supporters, state="MS") == ["Ana Lima", "Bruno Costa"]
        assert await supporter_names(supporters, city="Cuiabá") == ["Carla Dias"]

    @pytest.mark.asyncio
    async def test_engagement_list_and_search(self, supporters: SupporterService) -> None:
        assert await supporter_names(supporters, engagement_level=["low", "medium"]) == ["Bruno Costa", "Carla Dias"]
        assert await supporter_names(supporters, search="lima") == ["Ana Lima"]

    @pytest.mark.asyncio
    async def test_tags_must_all_be_present(self, supporters: SupporterService) -> None:
        assert await supporter_names(supporters, tags=["health"]) == ["Ana Lima", "Bruno Costa"]
        assert await supporter_names(supporters, tags=["health", "sports"]) == ["Bruno Costa"]
        assert await supporter_names(supporters, tags=[]) == ["Ana Lima", "Bruno Costa", "Carla Dias"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filters", [{"tags": "health"}, {"region": "north"}])
    async def test_invalid_filters(self, supporters: SupporterService, filters) -> None:
        with pytest.raises(ValidationError):
            await supporters.list_supporters(filters=filters)

    @pytest.mark.asyncio
    async def test_list_by_leader(self, supporters: SupporterService) -> None:
        page = await supporters.list_by_leader("leader-1")
        assert [s.name for s in page.items] == ["Bruno Costa", "Carla Dias"]
