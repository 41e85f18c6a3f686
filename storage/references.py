"""Placeholders left in a document for fields moved to the blob store."""

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field

REFERENCE_KIND = "storage_reference"


class StorageReference(BaseModel):
    """Stands in for an offloaded field inside the primary document."""

    kind: str = REFERENCE_KIND
    storage_id: str
    storage_path: str
    download_locator: str
    size: int = Field(..., description="Serialized size of the offloaded value in bytes")
    content_type: str = "application/json"
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    original_data_type: str = Field(..., description="'list' or 'dict'")


def is_storage_reference(value: Any) -> bool:
    return isinstance(value, dict) and value.get("kind") == REFERENCE_KIND and "storage_path" in value


def references_in(document: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Top-level fields of ``document`` that hold a storage reference."""
    return {field: value for field, value in document.items() if is_storage_reference(value)}
