"""Archive reference models for stored message artifacts."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ArchiveReference(BaseModel):
    """Reference to an archived message artifact with metadata for retrieval and verification.

    Attributes:
        blob_name: Name of the artifact inside the archive, i.e. ``{prefix}/{name}``
        storage_uri: Absolute file path to the artifact
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type (e.g., "application/json", "application/xml")
        size_bytes: Size of the artifact in bytes
        stored_at: Timestamp when the artifact was stored
        tags: Index tags taken from the correlation context
    """
    blob_name: str = Field(..., description="Archive-relative artifact name")
    storage_uri: str = Field(..., description="Absolute file path to the artifact")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: Optional[str] = Field(default=None, description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=datetime.utcnow, description="Storage timestamp")
    tags: Dict[str, str] = Field(default_factory=dict, description="Index tags")
