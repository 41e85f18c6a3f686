"""Size-reduction policies used when a document cannot be stored whole."""

from typing import Any, Dict, List

from storage.documents import Document, document_size
from storage.references import is_storage_reference

TRUNCATION_MARKER = "...[truncated for size]"

# Mappings at or under this size survive a minimal write
MINIMAL_MAPPING_BYTES = 4096


def _truncate_text(value: Any, text_chars: int) -> Any:
    if isinstance(value, str):
        if len(value) > text_chars:
            return value[:text_chars] + TRUNCATION_MARKER
        return value
    if isinstance(value, dict):
        return {k: _truncate_text(v, text_chars) for k, v in value.items()}
    if isinstance(value, list):
        return [_truncate_text(v, text_chars) for v in value]
    return value


def _most_recent(items: List[Any], max_items: int) -> List[Any]:
    """Newest ``max_items`` entries; dated entries are ordered newest first."""
    if len(items) <= max_items:
        return list(items)
    if all(isinstance(item, dict) and item.get("date") for item in items):
        return sorted(items, key=lambda item: str(item["date"]), reverse=True)[:max_items]
    return list(items[-max_items:])


def truncate_document(document: Document, max_items: int, text_chars: int, reason: str) -> Document:
    """Keep the newest entries of every top-level list and cap string length."""
    truncated: Dict[str, Any] = {}
    for field, value in document.items():
        if is_storage_reference(value):
            truncated[field] = value
            continue
        if isinstance(value, list):
            value = _most_recent(value, max_items)
        truncated[field] = _truncate_text(value, text_chars)

    truncated["data_truncated"] = True
    truncated["truncation_reason"] = reason
    return truncated


def minimal_document(document: Document, reason: str) -> Document:
    """Scalars and small mappings only; large containers are emptied."""
    minimal: Dict[str, Any] = {}
    for field, value in document.items():
        if isinstance(value, list):
            minimal[field] = []
        elif isinstance(value, dict):
            keep = is_storage_reference(value) or document_size(value) <= MINIMAL_MAPPING_BYTES
            minimal[field] = value if keep else {}
        else:
            minimal[field] = value

    minimal["data_truncated"] = True
    minimal["truncation_reason"] = reason
    return minimal
