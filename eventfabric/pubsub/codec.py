"""Wire envelope codec.

Every driver transmits a two-part frame ``[topic, payload]``. The payload is
the JSON text of the update's field map, compressed with zlib. ``pack`` and
``unpack`` are the only place the framing is defined, so any driver can
decode what any other driver sent.
"""

import json
import logging
import zlib
from typing import Any, Dict, Optional

from ..exceptions import DecodeError, EventFabricException
from .update import Update

logger = logging.getLogger(__name__)

COMPRESSION_LEVEL = 6
TOPIC_ENCODING = "utf-8"


def pack(message: Dict[str, Any]) -> bytes:
    """Serialize and compress a field map.

    Args:
        message: JSON-serializable mapping

    Returns:
        Packed payload

    Raises:
        EventFabricException: If the message is not serializable.
    """
    try:
        serialized = json.dumps(message, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EventFabricException(
            f"Failed to encode message: {e}",
            component="codec",
            error_code="encode_error",
        ) from e
    return zlib.compress(serialized, COMPRESSION_LEVEL)


def unpack(data: bytes) -> Dict[str, Any]:
    """Decompress and deserialize a payload produced by ``pack``.

    Raises:
        DecodeError: If the payload is corrupt.
    """
    try:
        message = json.loads(zlib.decompress(data).decode("utf-8"))
    except (zlib.error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise DecodeError(f"Failed to decode message: {e}") from e
    if not isinstance(message, dict):
        raise DecodeError(f"Expected a field map, got {type(message).__name__}")
    return message


def encode_update(update: Update) -> bytes:
    return pack(update.to_dict())


def decode_update(data: bytes) -> Update:
    """Rebuild an update from a payload.

    Raises:
        DecodeError: If the payload is corrupt or not a valid update.
    """
    message = unpack(data)
    try:
        return Update.from_dict(message)
    except (KeyError, ValueError) as e:
        raise DecodeError(f"Invalid update message: {e}") from e


def encode_topic(topic: str) -> bytes:
    return topic.encode(TOPIC_ENCODING)


def decode_topic(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, str):
        return data
    try:
        return data.decode(TOPIC_ENCODING)
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid topic: {e}") from e
