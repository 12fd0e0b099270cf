from __future__ import annotations

import json
from typing import Any, Mapping, Protocol

from ..core.exceptions import DecodeError


class QRCodec(Protocol):
    """Encodes/decodes the member identity token carried by a QR code."""

    def encode(self, data: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def decode(self, payload: str) -> dict:
        """Raises DecodeError when the payload is unreadable."""

        raise NotImplementedError


class JsonQRCodec(QRCodec):
    """Member tokens as a compact JSON object: {"id": ..., "name": ...}."""

    def encode(self, data: Mapping[str, Any]) -> str:
        return json.dumps(
            {"id": str(data["id"]), "name": str(data["name"])},
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def decode(self, payload: str) -> dict:
        if not isinstance(payload, str) or not payload.strip():
            raise DecodeError("Empty QR payload")
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise DecodeError("QR payload is not valid JSON") from e
        if not isinstance(data, dict):
            raise DecodeError("QR payload is not an object")
        return data
