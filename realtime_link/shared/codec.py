"""
MODULE OVERVIEW:
Frame encoding and decoding for the realtime connection.

WHAT IS HAPPENING HERE:
Inbound text frames are *attempted* as JSON. A frame that is not valid JSON is
handed to the consumer as the raw string instead of raising, and binary frames
are never touched. A malformed frame therefore can never take the manager down.
"""
import json
from typing import Any

from pydantic import BaseModel

HEARTBEAT_FRAME = {"type": "heartbeat"}
HEARTBEAT_ACK_TYPE = "heartbeat_response"


class MessageCodec:
    @staticmethod
    def decode(raw: Any) -> Any:
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except (ValueError, RecursionError):
                # JSONDecodeError, oversized integers and runaway nesting
                return raw
        return raw

    @staticmethod
    def encode(payload: Any) -> str | bytes:
        """Text and binary go out as-is; everything else is serialized to JSON text."""
        if isinstance(payload, (str, bytes)):
            return payload
        if isinstance(payload, BaseModel):
            return payload.model_dump_json()
        return json.dumps(payload)

    @staticmethod
    def is_heartbeat_ack(message: Any) -> bool:
        return isinstance(message, dict) and message.get("type") == HEARTBEAT_ACK_TYPE

    @staticmethod
    def message_type(message: Any) -> str:
        if isinstance(message, dict) and isinstance(message.get("type"), str):
            return message["type"]
        return "unknown"
