"""Page document models for the editor API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pagekit.kernel.types import MutationResult, PageRecord, PageVersion


class SavePageRequest(BaseModel):
    """What the editor sends to PUT /api/pages/{page_id}."""

    model_config = {"extra": "forbid"}

    document: dict[str, Any]
    title: str | None = Field(default=None, max_length=200)
    slug: str | None = Field(default=None, max_length=200)


class PublishRequest(BaseModel):
    """What the editor sends to publish. Without a document the stored one is published."""

    model_config = {"extra": "forbid"}

    document: dict[str, Any] | None = None


class MutationsRequest(BaseModel):
    """A batch of editor operations, applied in order."""

    model_config = {"extra": "forbid"}

    ops: list[dict[str, Any]] = Field(min_length=1)


class PageResponse(BaseModel):
    """A stored page document."""

    page_id: str
    title: str
    slug: str
    version: int
    status: str
    updated_at: str | None
    document: dict[str, Any]

    @classmethod
    def from_record(cls, record: PageRecord) -> PageResponse:
        return cls(
            page_id=record.page_id,
            title=record.title,
            slug=record.slug,
            version=record.version,
            status=record.status,
            updated_at=record.updated_at,
            document=record.document,
        )


class VersionResponse(BaseModel):
    """An archived document."""

    version: int
    created_at: str
    document: dict[str, Any]

    @classmethod
    def from_version(cls, version: PageVersion) -> VersionResponse:
        return cls(version=version.version, created_at=version.created_at, document=version.document)


class MutationOutcome(BaseModel):
    accepted: bool
    reason: str | None = None
    node_id: str | None = None

    @classmethod
    def from_result(cls, result: MutationResult) -> MutationOutcome:
        return cls(accepted=result.accepted, reason=result.reason, node_id=result.node_id)


class MutationsResponse(BaseModel):
    """What the mutations endpoint returns."""

    page: PageResponse
    results: list[MutationOutcome]
