"""身份令牌解析与日志格式化测试。"""

import json
import logging
from datetime import timedelta

from app.packages.fileshare.core.logger import JsonFormatter, RequestIdFilter, get_request_id, set_request_id
from app.packages.fileshare.core.security import create_identity_token, decode_identity_token, subject_from_claims


def test_identity_token_round_trip():
    claims = decode_identity_token(create_identity_token("alice"))
    assert claims is not None
    assert subject_from_claims(claims) == "alice"


def test_expired_or_forged_tokens_are_rejected():
    assert decode_identity_token(create_identity_token("alice", expires_delta=timedelta(seconds=-5))) is None
    assert decode_identity_token("definitely.not.jwt") is None


def test_subject_from_claims_accepts_user_id():
    assert subject_from_claims({"user_id": 42}) == "42"
    assert subject_from_claims({"sub": "  "}) is None
    assert subject_from_claims({}) is None


def test_json_formatter_includes_request_and_file_context():
    set_request_id("req-json")
    try:
        record = logging.LogRecord("app", logging.INFO, __file__, 1, "File deleted id=%s", (7,), None)
        record.share_id = "AbCdEfGh1234"
        record.file_id = 7
        RequestIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        set_request_id(None)

    assert payload["msg"] == "File deleted id=7"
    assert payload["request_id"] == "req-json"
    assert payload["share_id"] == "AbCdEfGh1234"
    assert payload["file_id"] == 7
    assert get_request_id() is None
