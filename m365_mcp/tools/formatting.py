"""JSON rendering of Graph responses for tool output.

Graph models are serialized with kiota's JSON writer. OData bookkeeping
(``@odata.*`` annotations, backing-store internals) is stripped at every
depth so agents only see the resource fields.
"""

import json
from typing import Any

from kiota_abstractions.serialization import Parsable
from kiota_serialization_json.json_serialization_writer import JsonSerializationWriter
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

_STRIPPED_KEYS = frozenset({"backingStore", "odataType", "additionalData"})


def _is_odata_key(key: str) -> bool:
    lowered = key.lower()
    return lowered.startswith("@odata.") or lowered.startswith("odata.") or key in _STRIPPED_KEYS


def strip_odata(value: Any) -> Any:
    """Return ``value`` with OData metadata keys removed from every nested object."""
    if isinstance(value, dict):
        return {k: strip_odata(v) for k, v in value.items() if not _is_odata_key(k)}
    if isinstance(value, list):
        return [strip_odata(item) for item in value]
    return value


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, Parsable):
        writer = JsonSerializationWriter()
        writer.write_object_value(None, data)
        return json.loads(writer.get_serialized_content())
    return data


def format_response(data: Any) -> str:
    """Serialize a Graph model (or plain dict/list) as indented JSON without OData metadata.

    ``None`` (e.g. a 204 from a delete) renders as ``{"success": true}``.
    """
    if data is None:
        return json.dumps({"success": True}, indent=2)
    return json.dumps(strip_odata(_to_jsonable(data)), indent=2, default=str)


def format_error(error: ODataError) -> str:
    """Render a Graph OData error as ``{"error": true, "code", "message", "statusCode"}``."""
    main = error.error
    payload = {
        "error": True,
        "code": (main.code if main else None) or "UnknownError",
        "message": (main.message if main else None) or str(error) or "Unknown error",
        "statusCode": error.response_status_code,
    }
    return json.dumps(payload, indent=2)


def format_message(message: str, *, error: bool = False) -> str:
    """Plain-text tool result wrapped in the same JSON envelope as errors."""
    return json.dumps({"error": error, "message": message}, indent=2)
