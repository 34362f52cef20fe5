"""Admin login bridge and maintenance operations."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from oraclenet_identity.core.errors import AuthorizationError
from oraclenet_identity.core.security import (
    create_access_token,
    derive_admin_secret,
    verify_signer,
)
from oraclenet_identity.core.settings import settings
from oraclenet_identity.services.stores import StateStores

logger = logging.getLogger(__name__)


def _constant_time_equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


@dataclass(frozen=True)
class AdminSession:
    token: str
    email: str | None


class AdminBridge:
    """Turns an allow-listed wallet signature into an admin session."""

    def __init__(self, stores: StateStores) -> None:
        self.stores = stores

    def login(self, address: str, signature: str, message: str) -> AdminSession:
        """Authenticate an admin wallet.

        The secret derived from the signature must match ``ADMIN_PASSWORD``,
        which is provisioned out of band from the same signature.
        """
        wallet = verify_signer(message, signature, address)
        if wallet not in settings.admin_wallet_set:
            raise AuthorizationError("Wallet is not an admin")
        if not settings.admin_password:
            raise AuthorizationError("Admin login is not configured")
        if not _constant_time_equals(derive_admin_secret(signature), settings.admin_password):
            raise AuthorizationError("Admin secret mismatch")

        logger.info("Admin session issued for %s", wallet)
        token = create_access_token(wallet, {"type": "admin", "wallet": wallet})
        return AdminSession(token=token, email=settings.admin_email)

    def cleanup(self, wallet: str, admin_email: str, admin_password: str) -> str:
        """Delete a wallet's verification and bot index using admin credentials."""
        if not settings.admin_email or not settings.admin_password:
            raise AuthorizationError("Invalid admin credentials")
        email_ok = _constant_time_equals(admin_email, settings.admin_email)
        password_ok = _constant_time_equals(admin_password, settings.admin_password)
        if not (email_ok and password_ok):
            raise AuthorizationError("Invalid admin credentials")

        self.stores.verified.delete(wallet)
        self.stores.roots.delete_bot(wallet)
        logger.info("Admin cleanup removed verification for %s", wallet.lower())
        return wallet.lower()
