import pytest

from ikanban.errors import RuntimeCallError
from ikanban.runtime_client.responses import (
    ApiResponse,
    format_unknown_error,
    read_data_or_throw,
    read_mapping_or_throw,
    unwrap_response_data_or_throw,
)


def test_read_data_returns_data():
    assert read_data_or_throw(ApiResponse(data={"id": "x"}), "Failed") == {"id": "x"}
    assert read_data_or_throw({"data": [1, 2]}, "Failed") == [1, 2]


def test_read_data_accepts_falsy_data():
    assert read_data_or_throw(ApiResponse(data=False), "Failed") is False
    assert read_data_or_throw(ApiResponse(data=[]), "Failed") == []


def test_read_data_raises_with_prefixed_error_message():
    with pytest.raises(RuntimeCallError, match="^Failed to create worktree: boom$"):
        read_data_or_throw(ApiResponse(error={"message": "boom"}), "Failed to create worktree")


def test_read_data_raises_when_data_missing():
    with pytest.raises(
        RuntimeCallError, match="Failed to list: response did not include data.",
    ):
        read_data_or_throw(ApiResponse(), "Failed to list")


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValueError("bad"), "bad"),
        ("plain", "plain"),
        ({"detail": "not found"}, "not found"),
        ({"error": {"message": "nested"}}, "nested"),
        ({"code": 7}, "Unknown SDK error"),
        (42, "Unknown SDK error"),
    ],
)
def test_format_unknown_error(error, expected):
    assert format_unknown_error(error) == expected


def test_unwrap_passes_through_non_envelopes():
    handle = object()
    assert unwrap_response_data_or_throw(handle, "Failed") is handle
    assert unwrap_response_data_or_throw({"stream": 1}, "Failed") == {"stream": 1}


def test_unwrap_unwraps_envelopes_and_raises_errors():
    assert unwrap_response_data_or_throw(ApiResponse(data="h"), "Failed") == "h"
    with pytest.raises(RuntimeCallError, match="Failed: nope"):
        unwrap_response_data_or_throw({"error": "nope"}, "Failed")


def test_read_mapping_requires_an_object():
    assert read_mapping_or_throw(ApiResponse(data={"id": "x"}), "Failed") == {"id": "x"}
    with pytest.raises(
        RuntimeCallError, match="^Failed to create: expected an object, got bool.$",
    ):
        read_mapping_or_throw(ApiResponse(data=True), "Failed to create")
