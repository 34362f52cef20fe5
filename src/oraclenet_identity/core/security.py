"""Wallet signature recovery and access-token helpers."""
from __future__ import annotations

import hashlib
from datetime import UTC, datetime, timedelta
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from jose import jwt

from oraclenet_identity.core.errors import VerificationError
from oraclenet_identity.core.settings import settings

SIGNATURE_LENGTH_BYTES = 65


def decode_signature(signature_hex: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex signature into 65 raw bytes."""
    if not isinstance(signature_hex, str) or not signature_hex:
        raise VerificationError("Signature recovery failed: signature required")
    cleaned = signature_hex[2:] if signature_hex[:2].lower() == "0x" else signature_hex
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as err:
        raise VerificationError(f"Signature recovery failed: invalid hex ({err})") from err
    if len(raw) != SIGNATURE_LENGTH_BYTES:
        raise VerificationError(
            f"Signature recovery failed: expected {SIGNATURE_LENGTH_BYTES} bytes, got {len(raw)}"
        )
    return raw


def recover_address(message: str, signature_hex: str) -> str:
    """Recover the signer of an EIP-191 personal message.

    The message is prefixed with ``"\\x19Ethereum Signed Message:\\n" + len``
    before hashing, exactly as wallets do for ``personal_sign``.

    Args:
        message: UTF-8 text that was signed.
        signature_hex: Hex-encoded 65-byte ``r || s || v`` signature.

    Returns:
        The checksummed signer address.

    Raises:
        VerificationError: If the signature is malformed or recovery fails.
    """
    if not isinstance(message, str):
        raise VerificationError("Signature recovery failed: message must be a string")
    signature = decode_signature(signature_hex)
    try:
        return str(Account.recover_message(encode_defunct(text=message), signature=signature))
    except Exception as err:
        raise VerificationError(f"Signature recovery failed: {err}") from err


def addresses_match(left: str, right: str) -> bool:
    """Compare two wallet addresses case-insensitively."""
    return left.lower() == right.lower()


def verify_signer(message: str, signature_hex: str, expected: str, *, label: str = "") -> str:
    """Recover the signer and require it to equal `expected`.

    Returns:
        The expected address, lowercased.
    """
    recovered = recover_address(message, signature_hex)
    if not addresses_match(recovered, expected):
        prefix = f"{label} signature" if label else "Signature"
        raise VerificationError(f"{prefix} mismatch: expected {expected}, got {recovered}")
    return expected.lower()


def create_access_token(subject: str, extra_claims: dict[str, Any] | None = None) -> str:
    """Create a JWT access token for a human, oracle, or admin."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT issued by `create_access_token`."""
    claims: dict[str, Any] = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    return claims


def derive_admin_secret(signature_hex: str, length: int | None = None) -> str:
    """Derive the fixed admin secret from a wallet signature.

    The same signature always yields the same secret, so the admin account's
    password in the entity store must be set to this value out of band.
    """
    size = length if length is not None else settings.admin_secret_length
    return hashlib.sha256(signature_hex.lower().encode("utf-8")).hexdigest()[:size]
