from __future__ import annotations

import json
import logging
from typing import Any

from .errors import InvalidPayloadError, MalformedDocumentError

"""
Byte codec for the two persisted documents.

  items  -> {"<group>:<id>": <payload>, ...}
  groups -> {"<group>": {"<partition value>": ["<id>", ...]}, ...}

Both are plain JSON objects so documents written by older deployments load
unchanged.
"""

logger = logging.getLogger(__name__)

ITEMS = "items"
GROUPS = "groups"


def encode_document(doc: dict[str, Any]) -> bytes:
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def normalize_payload(payload: Any) -> Any:
    """
    Return `payload` exactly as it will read back after a reload (tuples become
    lists, non-string keys become strings). Raises InvalidPayloadError for
    values JSON cannot represent.
    """
    try:
        return json.loads(json.dumps(payload, ensure_ascii=False))
    except (TypeError, ValueError) as e:
        raise InvalidPayloadError(f"payload is not JSON-encodable: {e}") from e


def _check_groups(raw: dict[str, Any]) -> dict[str, dict[str, list[str]]]:
    out: dict[str, dict[str, list[str]]] = {}
    for group, buckets in raw.items():
        if not isinstance(buckets, dict):
            raise MalformedDocumentError(GROUPS, f"group {group!r} is not an object")
        clean: dict[str, list[str]] = {}
        for key, ids in buckets.items():
            if not isinstance(ids, list):
                raise MalformedDocumentError(GROUPS, f"bucket {group!r}/{key!r} is not an array")
            clean[key] = [str(i) for i in ids]
        out[group] = clean
    return out


def decode_document(name: str, payload: bytes | str | None, *, strict: bool = False) -> dict[str, Any]:
    """
    Decode a persisted document.

    Absent or empty input is an empty document. Malformed input raises
    MalformedDocumentError when `strict`, otherwise it is logged and treated
    as empty.
    """
    if not payload:
        return {}
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        raw = json.loads(payload)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise MalformedDocumentError(name, f"expected a JSON object, got {type(raw).__name__}")
        if name == GROUPS:
            return _check_groups(raw)
        return raw
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        err = MalformedDocumentError(name, str(e))
        if strict:
            raise err from e
        logger.warning("%s; starting with an empty document", err)
        return {}
    except MalformedDocumentError as e:
        if strict:
            raise
        logger.warning("%s; starting with an empty document", e)
        return {}
