"""Tests for the configuration token codec."""

from __future__ import annotations

import base64
import json

import pytest

from app.envelope import decode_envelope, encode_envelope, parse_envelope
from app.errors import AuthenticationError, FormatError
from app.models import DEFAULT_CATALOGS, CatalogSpec, ConfigEnvelope
from app.security import SessionCipher


@pytest.fixture
def cipher() -> SessionCipher:
    return SessionCipher(b"k" * 32)


def _token(payload: object) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def _is_default(envelope: ConfigEnvelope) -> bool:
    return (
        envelope.encrypted is None
        and envelope.catalogs is None
        and envelope.secret is None
        and envelope.mark_watched_on_load is False
        and envelope.search is True
    )


def test_encode_then_decode_preserves_settings(cipher: SessionCipher) -> None:
    envelope = ConfigEnvelope(
        catalogs=[
            CatalogSpec(type="movie", id=":ytsubs", name="Subs"),
            CatalogSpec(type="channel", id="lofi", name="Lofi"),
            CatalogSpec(type="movie", id=":ytsubs", name="Subs again"),
        ],
        mark_watched_on_load=True,
        search=False,
    )

    decoded = decode_envelope(encode_envelope(envelope), cipher)

    assert [spec.id for spec in decoded.catalogs or []] == [":ytsubs", "lofi", ":ytsubs"]
    assert decoded.mark_watched_on_load is True
    assert decoded.search is False


def test_token_is_url_path_safe(cipher: SessionCipher) -> None:
    envelope = ConfigEnvelope(
        catalogs=[CatalogSpec(type="movie", id="???>>>???", name="ÿÿÿ")]
    )

    token = encode_envelope(envelope)

    assert "/" not in token
    assert "+" not in token


def test_decode_recovers_encrypted_secret(cipher: SessionCipher) -> None:
    blob = cipher.encrypt(json.dumps({"auth": "refresh-123"}))
    token = _token({"encrypted": blob, "catalogs": [], "search": True})

    envelope = decode_envelope(token, cipher)

    assert envelope.secret is not None
    assert envelope.secret.auth == "refresh-123"
    assert envelope.encrypted == blob
    assert envelope.catalogs == []


def test_decode_without_decryption_keeps_blob_only(cipher: SessionCipher) -> None:
    blob = cipher.encrypt(json.dumps({"auth": "refresh-123"}))

    envelope = decode_envelope(_token({"encrypted": blob}), cipher, decrypt_secret=False)

    assert envelope.secret is None
    assert envelope.encrypted == blob


def test_secret_never_serialized(cipher: SessionCipher) -> None:
    blob = cipher.encrypt(json.dumps({"auth": "refresh-123"}))
    envelope = decode_envelope(_token({"encrypted": blob}), cipher)

    token = encode_envelope(envelope)
    payload = json.loads(base64.urlsafe_b64decode(token))

    assert "refresh-123" not in json.dumps(payload)
    assert payload == {"encrypted": blob, "markWatchedOnLoad": False, "search": True}


def test_secret_cannot_be_injected_through_json(cipher: SessionCipher) -> None:
    envelope = decode_envelope(_token({"secret": {"auth": "forged"}}), cipher)

    assert envelope.secret is None


def test_accepts_standard_and_unpadded_tokens(cipher: SessionCipher) -> None:
    payload = {"catalogs": [{"type": "movie", "id": "cats", "name": "Cats?>"}]}
    standard = _token(payload)
    unpadded = encode_envelope(ConfigEnvelope.model_validate(payload)).rstrip("=")

    assert decode_envelope(standard, cipher).catalogs[0].id == "cats"
    assert decode_envelope(unpadded, cipher).catalogs[0].name == "Cats?>"


@pytest.mark.parametrize(
    "token",
    [
        "not base64 at all!!",
        base64.b64encode(b"plain text, not json").decode(),
        base64.b64encode(b"\xff\xfe\xfd").decode(),
        _token(["a", "list"]),
        _token({"catalogs": [{"type": "series", "id": "x", "name": "x"}]}),
        _token({"catalogs": "nope"}),
        base64.urlsafe_b64encode(b"[" * 5000).decode(),
    ],
)
def test_malformed_tokens_decode_to_default(cipher: SessionCipher, token: str) -> None:
    envelope = decode_envelope(token, cipher)

    assert _is_default(envelope)
    assert envelope.effective_catalogs == DEFAULT_CATALOGS


def test_unauthenticated_blob_decodes_to_default(cipher: SessionCipher) -> None:
    foreign = SessionCipher(b"z" * 32).encrypt(json.dumps({"auth": "other"}))
    token = _token({"encrypted": foreign, "catalogs": [], "search": False})

    assert _is_default(decode_envelope(token, cipher))
    with pytest.raises(AuthenticationError):
        parse_envelope(token, cipher)


def test_malformed_blob_decodes_to_default(cipher: SessionCipher) -> None:
    token = _token({"encrypted": "only:two"})

    assert _is_default(decode_envelope(token, cipher))
    with pytest.raises(FormatError):
        parse_envelope(token, cipher)


def test_secret_with_wrong_shape_decodes_to_default(cipher: SessionCipher) -> None:
    token = _token({"encrypted": cipher.encrypt("not json")})

    assert _is_default(decode_envelope(token, cipher))


def test_failures_are_logged(cipher: SessionCipher, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING"):
        decode_envelope("%%%", cipher)

    assert any("Configuration token decoding" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token_is_default(cipher: SessionCipher, token: str | None) -> None:
    assert _is_default(decode_envelope(token, cipher))


def test_string_flags_are_coerced(cipher: SessionCipher) -> None:
    envelope = decode_envelope(
        _token({"markWatchedOnLoad": "on", "search": "false"}), cipher
    )

    assert envelope.mark_watched_on_load is True
    assert envelope.search is False
