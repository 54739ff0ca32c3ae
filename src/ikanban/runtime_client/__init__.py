from ikanban.runtime_client.client import (
    EventStream,
    RuntimeClient,
    RuntimeClientProvider,
)
from ikanban.runtime_client.responses import (
    ApiResponse,
    format_unknown_error,
    read_data_or_throw,
    read_mapping_or_throw,
    unwrap_response_data_or_throw,
)

__all__ = [
    "ApiResponse",
    "EventStream",
    "RuntimeClient",
    "RuntimeClientProvider",
    "format_unknown_error",
    "read_data_or_throw",
    "read_mapping_or_throw",
    "unwrap_response_data_or_throw",
]
