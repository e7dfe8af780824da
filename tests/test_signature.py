"""Unit tests for Slack request signature verification."""

import hashlib
import hmac

import pytest

from poetbot.slack.signature import compute_signature, verify_request

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
NOW = 1_531_420_618
BODY = (
    b"token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&team_domain=testteamnow"
    b"&channel_id=G8PSS9T3V&user_id=U2CERLKJA&text=hello"
)


def _reference_signature(body: bytes, timestamp: str, secret: str) -> str:
    base = b"v0:" + timestamp.encode() + b":" + body
    return "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()


def _flip(value: str, index: int) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1 :]


class TestComputeSignature:
    def test_matches_reference_hmac(self):
        assert compute_signature(BODY, str(NOW), SECRET) == _reference_signature(BODY, str(NOW), SECRET)

    def test_prefix_and_lowercase_hex(self):
        signature = compute_signature(BODY, str(NOW), SECRET)
        assert signature.startswith("v0=")
        digest = signature[3:]
        assert len(digest) == 64
        assert digest == digest.lower()

    def test_accepts_str_and_bytes_inputs(self):
        assert compute_signature(BODY.decode(), str(NOW), SECRET.encode()) == compute_signature(
            BODY, str(NOW), SECRET
        )


class TestVerifyRequest:
    def test_valid_signature(self):
        signature = _reference_signature(BODY, str(NOW), SECRET)
        assert verify_request(BODY, str(NOW), signature, SECRET, now=NOW) is True

    def test_valid_signature_with_bytes_secret(self):
        signature = _reference_signature(BODY, str(NOW), SECRET)
        assert verify_request(BODY, str(NOW), signature, SECRET.encode(), now=NOW) is True

    @pytest.mark.parametrize("index", [3, 10, 40, 66])
    def test_flipped_signature_character(self, index):
        signature = _flip(_reference_signature(BODY, str(NOW), SECRET), index)
        assert verify_request(BODY, str(NOW), signature, SECRET, now=NOW) is False

    def test_tampered_body(self):
        signature = _reference_signature(BODY, str(NOW), SECRET)
        tampered = BODY.replace(b"hello", b"hellp")
        assert verify_request(tampered, str(NOW), signature, SECRET, now=NOW) is False

    def test_tampered_timestamp(self):
        signature = _reference_signature(BODY, str(NOW), SECRET)
        assert verify_request(BODY, str(NOW + 1), signature, SECRET, now=NOW) is False

    def test_wrong_secret(self):
        signature = _reference_signature(BODY, str(NOW), "another-secret")
        assert verify_request(BODY, str(NOW), signature, SECRET, now=NOW) is False

    @pytest.mark.parametrize("offset", [301, -301, 3600, -86400])
    def test_timestamp_outside_replay_window(self, offset):
        timestamp = str(NOW + offset)
        signature = _reference_signature(BODY, timestamp, SECRET)
        assert verify_request(BODY, timestamp, signature, SECRET, now=NOW) is False

    @pytest.mark.parametrize("offset", [0, 300, -300, 120])
    def test_timestamp_inside_replay_window(self, offset):
        timestamp = str(NOW + offset)
        signature = _reference_signature(BODY, timestamp, SECRET)
        assert verify_request(BODY, timestamp, signature, SECRET, now=NOW) is True

    def test_custom_window(self):
        timestamp = str(NOW - 60)
        signature = _reference_signature(BODY, timestamp, SECRET)
        assert verify_request(BODY, timestamp, signature, SECRET, now=NOW, window=30) is False

    @pytest.mark.parametrize(
        "timestamp,signature",
        [(None, "v0=abc"), (str(NOW), None), ("", "v0=abc"), (str(NOW), "")],
    )
    def test_missing_headers(self, timestamp, signature):
        assert verify_request(BODY, timestamp, signature, SECRET, now=NOW) is False

    def test_empty_secret(self):
        signature = _reference_signature(BODY, str(NOW), "")
        assert verify_request(BODY, str(NOW), signature, "", now=NOW) is False

    def test_non_numeric_timestamp(self):
        assert verify_request(BODY, "yesterday", "v0=abc", SECRET, now=NOW) is False

    def test_uses_wall_clock_by_default(self, monkeypatch):
        monkeypatch.setattr("poetbot.slack.signature.time.time", lambda: NOW + 10)
        signature = _reference_signature(BODY, str(NOW), SECRET)
        assert verify_request(BODY, str(NOW), signature, SECRET) is True

    def test_non_ascii_signature_header(self):
        assert verify_request(BODY, str(NOW), "v0=ünïcode", SECRET, now=NOW) is False
