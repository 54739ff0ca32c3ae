from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ikanban.errors import RuntimeCallError


@dataclass
class ApiResponse:
    """Response envelope returned by every runtime client call."""

    data: Any = None
    error: Any = None


def format_unknown_error(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        for key in ("message", "detail", "error"):
            value = error.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, Mapping):
                return format_unknown_error(value)
    return "Unknown SDK error"


def read_data_or_throw(response: Any, failure_message: str) -> Any:
    """Unwrap ``data`` from a runtime response or raise ``RuntimeCallError``.

    Accepts ``ApiResponse`` instances as well as plain mappings with the
    same ``data``/``error`` keys.
    """
    if isinstance(response, Mapping):
        error = response.get("error")
        data = response.get("data")
    else:
        error = getattr(response, "error", None)
        data = getattr(response, "data", None)

    if error:
        raise RuntimeCallError(f"{failure_message}: {format_unknown_error(error)}")
    if data is None:
        raise RuntimeCallError(f"{failure_message}: response did not include data.")
    return data


def unwrap_response_data_or_throw(response: Any, failure_message: str) -> Any:
    """Lenient variant for handles that may arrive with or without an envelope.

    Anything that does not look like an envelope is returned untouched.
    """
    if isinstance(response, ApiResponse):
        return read_data_or_throw(response, failure_message)
    if not isinstance(response, Mapping):
        return response
    if response.get("error"):
        raise RuntimeCallError(
            f"{failure_message}: {format_unknown_error(response['error'])}"
        )
    if "data" in response:
        return read_data_or_throw(response, failure_message)
    return response


def read_mapping_or_throw(response: Any, failure_message: str) -> Mapping[str, Any]:
    """Like ``read_data_or_throw`` but the data must be a JSON object."""
    data = read_data_or_throw(response, failure_message)
    if not isinstance(data, Mapping):
        raise RuntimeCallError(
            f"{failure_message}: expected an object, got {type(data).__name__}."
        )
    return data
