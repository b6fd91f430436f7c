import base64
import json
import zlib

import pytest

from cxsession.codec import DEFLATE_PREFIX, deflate_records, inflate_records


def test_deflate_is_raw_deflate_over_compact_json():
    records = [{"content": "Ćao, svete", "sectionId": 1, "validate": False, "origin": "user"}]

    payload = deflate_records(records)

    assert payload.startswith(DEFLATE_PREFIX)
    raw = zlib.decompress(base64.b64decode(payload[len(DEFLATE_PREFIX) :]), -zlib.MAX_WBITS)
    assert raw.decode("utf-8") == json.dumps(records, ensure_ascii=False, separators=(",", ":"))
    assert inflate_records(payload) == records


def test_deflate_is_deterministic():
    records = [{"content": "x" * 200, "sectionId": 2, "validate": True, "origin": "Google"}]
    assert deflate_records(records) == deflate_records(records)


def test_inflate_accepts_plain_json():
    assert inflate_records('[{"sectionId": 1}]') == [{"sectionId": 1}]


def test_inflate_rejects_bad_payloads():
    with pytest.raises(ValueError, match="invalid section content"):
        inflate_records(DEFLATE_PREFIX + "not base64!")
    with pytest.raises(ValueError, match="JSON array"):
        inflate_records('{"sectionId": 1}')
