"""
Pydantic models for PageKit.

All request/response shapes defined here. No imports from db, services, or routes.
"""

from backend.models.page import (
    MutationOutcome,
    MutationsRequest,
    MutationsResponse,
    PageResponse,
    PublishRequest,
    SavePageRequest,
    VersionResponse,
)

__all__ = [
    # Requests
    "SavePageRequest",
    "PublishRequest",
    "MutationsRequest",
    # Responses
    "PageResponse",
    "VersionResponse",
    "MutationOutcome",
    "MutationsResponse",
]
