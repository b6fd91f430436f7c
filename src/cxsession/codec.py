from __future__ import annotations

import base64
import json
import zlib
from typing import Any


DEFLATE_PREFIX = "rawdeflate,"


def deflate_records(records: list[dict[str, Any]]) -> str:
    raw = json.dumps(records, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    data = compressor.compress(raw) + compressor.flush()
    return DEFLATE_PREFIX + base64.b64encode(data).decode("ascii")


def inflate_records(payload: str) -> list[dict[str, Any]]:
    if payload.startswith(DEFLATE_PREFIX):
        try:
            raw = zlib.decompress(
                base64.b64decode(payload[len(DEFLATE_PREFIX) :], validate=True),
                -zlib.MAX_WBITS,
            )
        except (ValueError, zlib.error) as exc:
            raise ValueError("invalid section content") from exc
        text = raw.decode("utf-8")
    else:
        # The save endpoint also accepts plain JSON.
        text = payload
    records = json.loads(text)
    if not isinstance(records, list):
        raise ValueError("content must be a JSON array")
    return records
