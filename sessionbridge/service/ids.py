from __future__ import annotations

import secrets

from sessionbridge.service.errors import IDGenerationFailed

SESSION_ID_BYTES = 32
REFRESH_TOKEN_ID_BYTES = 32
OAUTH_STATE_BYTES = 16


def generate_hex_id(byte_length: int) -> str:
    """Return ``2 * byte_length`` lowercase hex chars from the OS CSPRNG.

    Raises ``IDGenerationFailed`` when the entropy source is unavailable;
    there is no fallback to a non-cryptographic generator.
    """
    if byte_length < 1:
        raise ValueError("byte_length must be at least 1")
    try:
        return secrets.token_bytes(byte_length).hex()
    except (OSError, NotImplementedError) as exc:
        raise IDGenerationFailed(
            "entropy source unavailable", detail={"error": str(exc)}
        ) from exc


def generate_session_id() -> str:
    return generate_hex_id(SESSION_ID_BYTES)


def generate_refresh_token_id() -> str:
    return generate_hex_id(REFRESH_TOKEN_ID_BYTES)


def generate_oauth_state() -> str:
    return generate_hex_id(OAUTH_STATE_BYTES)
