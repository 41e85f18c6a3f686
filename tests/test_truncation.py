"""Tests for the truncated and minimal document fallbacks."""

from storage.truncation import TRUNCATION_MARKER, minimal_document, truncate_document


def _reference(path: str = "brands/b1/query_processing_results/1-abc.json") -> dict:
    return {
        "kind": "storage_reference",
        "storage_id": "1-abc",
        "storage_path": path,
        "download_locator": f"memory://{path}",
        "size": 10,
        "original_data_type": "list",
    }


class TestTruncateDocument:
    def test_keeps_newest_dated_entries(self) -> None:
        items = [{"date": f"2024-05-0{i}", "n": i} for i in range(1, 8)]
        truncated = truncate_document({"items": items}, max_items=3, text_chars=100, reason="size_limit_exceeded")

        assert [item["n"] for item in truncated["items"]] == [7, 6, 5]
        assert truncated["data_truncated"] is True
        assert truncated["truncation_reason"] == "size_limit_exceeded"

    def test_undated_entries_keep_the_tail(self) -> None:
        truncated = truncate_document({"items": list(range(10))}, max_items=2, text_chars=100, reason="r")
        assert truncated["items"] == [8, 9]

    def test_long_strings_are_capped_recursively(self) -> None:
        document = {"text": "x" * 20, "nested": {"inner": ["y" * 20, "short"]}}
        truncated = truncate_document(document, max_items=10, text_chars=5, reason="r")

        assert truncated["text"] == "xxxxx" + TRUNCATION_MARKER
        assert truncated["nested"]["inner"] == ["yyyyy" + TRUNCATION_MARKER, "short"]

    def test_references_are_preserved(self) -> None:
        reference = _reference()
        truncated = truncate_document({"results": reference}, max_items=1, text_chars=1, reason="r")
        assert truncated["results"] == reference


class TestMinimalDocument:
    def test_containers_emptied_scalars_kept(self) -> None:
        document = {
            "name": "Acme",
            "count": 3,
            "items": [1, 2, 3],
            "profile": {"plan": "pro"},
            "blob": {"data": "z" * 5000},
            "results": _reference(),
        }
        minimal = minimal_document(document, "write_stream_exhausted")

        assert minimal["name"] == "Acme"
        assert minimal["count"] == 3
        assert minimal["items"] == []
        assert minimal["profile"] == {"plan": "pro"}
        assert minimal["blob"] == {}
        assert minimal["results"] == document["results"]
        assert minimal["truncation_reason"] == "write_stream_exhausted"
