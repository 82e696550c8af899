"""Wire protocol shared by the daemon server and client.

Messages are single-line JSON objects terminated by ``\\n``. A request is
``{"command": <name>, ...args}``; a response is either a result object or
``{"error": <message>}``.
"""

import json
from typing import Any

from gitify_prompt.errors import ProtocolError

ENCODING = "utf-8"
DELIMITER = b"\n"
MAX_MESSAGE_BYTES = 16 * 1024 * 1024


def encode_message(message: dict[str, Any]) -> bytes:
    """Serialize a message to one delimited line.

    json.dumps escapes embedded newlines, so the delimiter never appears
    inside a message.
    """
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode(ENCODING) + DELIMITER


def decode_message(line: bytes) -> dict[str, Any]:
    """Parse one line into a message object.

    Raises:
        ProtocolError: If the line is not a JSON object
    """
    try:
        message = json.loads(line.decode(ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid message: {e}") from e
    if not isinstance(message, dict):
        raise ProtocolError("Message must be a JSON object")
    return message


def build_request(command: str, **args: Any) -> dict[str, Any]:
    """Request object; None-valued arguments are omitted."""
    request = {k: v for k, v in args.items() if v is not None}
    request["command"] = command
    return request


def error_response(message: str) -> dict[str, Any]:
    return {"error": message}
