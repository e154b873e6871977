"""
Envelope codec for stored values.

Every value written by the storage service is wrapped in an envelope::

    {"value": "<payload>", "timestamp": 1700000000000, "version": "1.0.0",
     "encrypted": false, "compressed": false}

The payload is the JSON serialization of the value, optionally
compressed (zlib + base64) and then optionally encrypted. Values written
by older releases are not enveloped; ``parse_record`` classifies what it
finds instead of guessing.
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from dataclasses import dataclass
from typing import Any


class CodecError(ValueError):
    """A stored payload could not be decoded."""


@dataclass(frozen=True)
class EnvelopedRecord:
    """A value written through the storage service."""

    value: Any
    timestamp: int | None = None
    version: str | None = None
    encrypted: bool = False
    compressed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "timestamp": self.timestamp,
            "version": self.version,
            "encrypted": self.encrypted,
            "compressed": self.compressed,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass(frozen=True)
class LegacyRecord:
    """Valid JSON that is not an envelope."""

    value: Any


@dataclass(frozen=True)
class RawRecord:
    """A string that is not JSON at all."""

    text: str


ParsedRecord = EnvelopedRecord | LegacyRecord | RawRecord


def parse_record(raw: str) -> ParsedRecord:
    """Classify a stored string.

    - JSON object containing ``value``: enveloped record
    - any other JSON: legacy record
    - anything else: raw record
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return RawRecord(raw)

    if isinstance(data, dict) and "value" in data:
        return EnvelopedRecord(
            value=data["value"],
            timestamp=data.get("timestamp"),
            version=data.get("version"),
            encrypted=bool(data.get("encrypted", False)),
            compressed=bool(data.get("compressed", False)),
        )
    return LegacyRecord(data)


def serialize_value(value: Any) -> str:
    """JSON-serialize a value for the envelope payload.

    Raises:
        TypeError: If the value is not JSON serializable
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def deserialize_value(payload: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError as e:
        raise CodecError(f"Payload is not valid JSON: {e}") from e


def compress_text(text: str) -> str:
    """zlib-compress text and encode it as base64."""
    return base64.b64encode(zlib.compress(text.encode("utf-8"), 9)).decode("ascii")


def decompress_text(data: str) -> str:
    """Inverse of ``compress_text``."""
    try:
        return zlib.decompress(base64.b64decode(data, validate=True)).decode("utf-8")
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise CodecError(f"Compressed payload is corrupt: {e}") from e


def maybe_compress(text: str, enabled: bool, threshold: int) -> tuple[str, bool]:
    """Compress text when enabled and longer than the threshold.

    Returns:
        (payload, compressed) where ``compressed`` says whether it happened
    """
    if enabled and len(text) > threshold:
        return compress_text(text), True
    return text, False
