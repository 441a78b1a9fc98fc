"""Encoding and decoding of the client-held configuration token."""

from __future__ import annotations

import base64
import binascii
import json

from pydantic import ValidationError

from .errors import AddonError, FormatError
from .models import ConfigEnvelope, SessionSecret
from .security import SessionCipher
from .utils import fail_open


def encode_envelope(envelope: ConfigEnvelope) -> str:
    """Serialize ``envelope`` into a URL-safe base64 token.

    The decrypted secret is never part of the token; only the already
    encrypted blob travels back to the client.
    """

    payload = json.dumps(envelope.to_wire(), separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def _b64decode(token: str) -> bytes:
    normalized = token.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FormatError("Token is not valid base64") from exc


def parse_envelope(
    token: str, cipher: SessionCipher, *, decrypt_secret: bool = True
) -> ConfigEnvelope:
    """Strictly decode ``token``, raising :class:`FormatError` or
    :class:`AuthenticationError` on any problem."""

    raw = _b64decode(token)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise FormatError("Token does not contain JSON") from exc
    if not isinstance(data, dict):
        raise FormatError("Token JSON must be an object")
    try:
        envelope = ConfigEnvelope.model_validate(data)
    except ValidationError as exc:
        raise FormatError(f"Token JSON has an invalid shape: {exc}") from exc

    if decrypt_secret and envelope.encrypted:
        plaintext = cipher.decrypt(envelope.encrypted)
        try:
            envelope.attach_secret(SessionSecret.model_validate_json(plaintext))
        except ValidationError as exc:
            raise FormatError("Decrypted secret has an invalid shape") from exc
    return envelope


@fail_open(ConfigEnvelope, label="Configuration token decoding", errors=(AddonError,))
def decode_envelope(
    token: str | None, cipher: SessionCipher, *, decrypt_secret: bool = True
) -> ConfigEnvelope:
    """Decode ``token``; any failure yields the default empty envelope."""

    if not token:
        return ConfigEnvelope()
    return parse_envelope(token, cipher, decrypt_secret=decrypt_secret)
