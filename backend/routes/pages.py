"""Page document routes — get, save, publish, versions, mutations, render."""

from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse, Response

from backend.models.page import (
    MutationOutcome,
    MutationsRequest,
    MutationsResponse,
    PageResponse,
    PublishRequest,
    SavePageRequest,
    VersionResponse,
)
from backend.services.pages import page_service
from pagekit.kernel.assembly import InvalidDocument, PageNotFound

router = APIRouter(prefix="/api/pages", tags=["pages"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found.")


def _invalid(e: InvalidDocument) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Invalid document.", "errors": e.errors},
    )


@router.get("/{page_id}", status_code=200)
async def get_page(page_id: str) -> PageResponse:
    """Get the stored document for a page."""
    try:
        record = await page_service.require_assembly().load_record(page_id)
    except PageNotFound:
        raise _not_found() from None
    return PageResponse.from_record(record)


@router.put("/{page_id}", status_code=200)
async def save_page(page_id: str, req: SavePageRequest) -> PageResponse:
    """Save the editor's document as a draft. Version and status are kept."""
    try:
        record = await page_service.require_assembly().save(page_id, req.document, req.title, req.slug)
    except InvalidDocument as e:
        raise _invalid(e) from None
    return PageResponse.from_record(record)


@router.post("/{page_id}/publish", status_code=200)
async def publish_page(page_id: str, req: PublishRequest) -> PageResponse:
    """
    Publish a page.

    The current document is archived as a version record, then the new
    document is written with version + 1 and status "published".
    """
    try:
        record = await page_service.require_assembly().publish(page_id, req.document)
    except PageNotFound:
        raise _not_found() from None
    except InvalidDocument as e:
        raise _invalid(e) from None
    return PageResponse.from_record(record)


@router.get("/{page_id}/versions", status_code=200)
async def list_versions(page_id: str) -> list[VersionResponse]:
    """Archived versions, newest first."""
    try:
        versions = await page_service.require_assembly().versions(page_id)
    except PageNotFound:
        raise _not_found() from None
    return [VersionResponse.from_version(v) for v in versions]


@router.post("/{page_id}/mutations", status_code=200)
async def apply_mutations(page_id: str, req: MutationsRequest) -> MutationsResponse:
    """
    Apply a batch of editor operations.

    The batch is all-or-nothing: if any operation is rejected the stored
    document is left untouched and 409 is returned with every outcome.
    """
    try:
        record, results = await page_service.require_assembly().apply(page_id, req.ops, atomic=True)
    except PageNotFound:
        raise _not_found() from None
    except InvalidDocument as e:
        raise _invalid(e) from None

    outcomes = [MutationOutcome.from_result(r) for r in results]
    if not all(r.accepted for r in results):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Mutation rejected.",
                "results": [o.model_dump() for o in outcomes],
            },
        )
    return MutationsResponse(page=PageResponse.from_record(record), results=outcomes)


@router.get("/{page_id}/render", response_class=HTMLResponse)
async def render_page(
    page_id: str,
    filters: str | None = Query(default=None, description="JSON object of initial filter values"),
) -> Response:
    """Server-side render of the stored document as a full HTML page."""
    initial: dict | None = None
    if filters:
        try:
            initial = json.loads(filters)
        except ValueError:
            initial = None
        if not isinstance(initial, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="filters must be a JSON object.")

    try:
        html = await page_service.render(page_id, filters=initial)
    except PageNotFound:
        return HTMLResponse(
            content="<html><body><h1>404 — Page not found</h1></body></html>",
            status_code=404,
        )

    return HTMLResponse(
        content=html,
        headers={"X-Content-Type-Options": "nosniff", "Cache-Control": "no-store"},
    )
