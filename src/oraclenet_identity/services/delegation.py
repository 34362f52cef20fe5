"""Delegated authorization: a verified human lets a bot wallet claim an Oracle.

The flow has three signed steps and never moves a private key::

    bot    -> create_request(bot, oracle, issue)        status: pending
    human  -> authorize(reqId, human, sig, msg)         status: authorized
    bot    -> claim(authCode, bot_sig, bot_msg)         status: claimed

Transitions are compare-and-swap on the stored request, so when two callers
race on one ``reqId`` exactly one of them wins.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session

from oraclenet_identity.core.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    VerificationError,
)
from oraclenet_identity.core.security import verify_signer
from oraclenet_identity.core.settings import settings
from oraclenet_identity.db.time import isoformat_ms, utcnow, utcnow_iso
from oraclenet_identity.repositories.identity_repo import IdentityRepository
from oraclenet_identity.services.identity import (
    NOT_VERIFIED_MESSAGE,
    OracleLogin,
    bind_bot_oracle,
    oracle_token,
)
from oraclenet_identity.services.stores import AuthRequest, AuthStatus, StateStores

logger = logging.getLogger(__name__)

AUTH_CODE_PREFIX = "AUTH:"
REQUEST_NOT_FOUND_MESSAGE = "Auth request not found or expired"


@dataclass(frozen=True)
class AuthCode:
    """Bearer proof that a human authorized a bot; serialized, never stored."""

    msg: str
    sig: str
    human: str
    bot: str
    oracle: str
    issue: int
    req_id: str
    github: str
    ts: str

    def encode(self) -> str:
        payload = {
            "msg": self.msg,
            "sig": self.sig,
            "human": self.human,
            "bot": self.bot,
            "oracle": self.oracle,
            "issue": self.issue,
            "reqId": self.req_id,
            "github": self.github,
            "ts": self.ts,
        }
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return AUTH_CODE_PREFIX + base64.b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, code: str) -> AuthCode:
        if not code.startswith(AUTH_CODE_PREFIX):
            raise ValidationError("Invalid auth code format")
        try:
            raw = base64.b64decode(code[len(AUTH_CODE_PREFIX):], validate=True)
            payload: dict[str, Any] = json.loads(raw.decode("utf-8"))
            return cls(
                msg=str(payload["msg"]),
                sig=str(payload["sig"]),
                human=str(payload["human"]).lower(),
                bot=str(payload["bot"]).lower(),
                oracle=str(payload["oracle"]),
                issue=int(payload["issue"]),
                req_id=str(payload["reqId"]),
                github=str(payload["github"]),
                ts=str(payload["ts"]),
            )
        except (ValueError, KeyError, TypeError) as err:
            raise ValidationError("Failed to decode auth code") from err


def _mismatched_fields(request: AuthRequest, code: AuthCode) -> list[str]:
    expected = {
        "bot": (request.bot_wallet, code.bot),
        "oracle": (request.oracle_name, code.oracle),
        "issue": (request.birth_issue, code.issue),
        "human": (request.human_wallet, code.human),
        "github": (request.github_username, code.github),
    }
    return [name for name, (stored, claimed) in expected.items() if stored != claimed]


class DelegationBroker:
    """Drives auth requests through pending, authorized, and claimed."""

    def __init__(self, session: Session, stores: StateStores) -> None:
        self.session = session
        self.repo = IdentityRepository(session)
        self.stores = stores

    def create_request(
        self, bot_wallet: str, oracle_name: str, birth_issue: int
    ) -> tuple[str, AuthRequest]:
        req_id = f"req_{uuid.uuid4().hex[:12]}"
        now = utcnow()
        record = AuthRequest(
            bot_wallet=bot_wallet.lower(),
            oracle_name=oracle_name,
            birth_issue=birth_issue,
            created_at=isoformat_ms(now),
            expires_at=isoformat_ms(now + timedelta(seconds=settings.auth_request_ttl_seconds)),
        )
        self.stores.auth_requests.create(req_id, record)
        logger.info("Auth request %s opened by bot %s for %s", req_id, record.bot_wallet, oracle_name)
        return req_id, record

    def get_status(self, req_id: str) -> AuthRequest:
        request = self.stores.auth_requests.get(req_id)
        if request is None:
            raise NotFoundError(REQUEST_NOT_FOUND_MESSAGE)
        return request

    def authorize(self, req_id: str, human_wallet: str, signature: str, message: str) -> str:
        """Record the human's consent and hand back an auth code for the bot.

        Raises:
            NotFoundError: The request is absent or expired.
            AuthorizationError: The human is unverified or the request is no
                longer pending.
            VerificationError: The signature does not recover to `human_wallet`.
        """
        request = self.get_status(req_id)

        verified = self.stores.verified.get(human_wallet)
        if verified is None:
            raise AuthorizationError(NOT_VERIFIED_MESSAGE)

        if settings.authorize_require_req_id_in_message and req_id not in message:
            raise VerificationError("Authorization message must include the request id")
        human = verify_signer(message, signature, human_wallet)

        if request.status is not AuthStatus.PENDING:
            raise AuthorizationError(f"Auth request is already {request.status.value}")

        now = utcnow_iso()
        updated = replace(
            request,
            status=AuthStatus.AUTHORIZED,
            human_wallet=human,
            github_username=verified.github_username,
            authorized_at=now,
        )
        if not self.stores.auth_requests.transition(
            req_id, request, updated, ttl=settings.auth_request_ttl_seconds
        ):
            raise AuthorizationError("Auth request is no longer pending")

        logger.info("Auth request %s authorized by %s", req_id, human)
        return AuthCode(
            msg=message,
            sig=signature,
            human=human,
            bot=request.bot_wallet,
            oracle=request.oracle_name,
            issue=request.birth_issue,
            req_id=req_id,
            github=verified.github_username,
            ts=now,
        ).encode()

    def claim(self, auth_code: str, bot_signature: str, bot_message: str) -> OracleLogin:
        """Redeem an auth code: both signatures are re-checked before the claim."""
        code = AuthCode.decode(auth_code)
        request = self.get_status(code.req_id)

        if request.status is AuthStatus.PENDING:
            raise AuthorizationError("Auth request not yet authorized by human")
        if request.status is AuthStatus.CLAIMED:
            raise AuthorizationError("Auth request already claimed")

        mismatched = _mismatched_fields(request, code)
        if mismatched:
            raise AuthorizationError(
                "Auth code does not match the authorized request",
                debug={"mismatched_fields": mismatched},
            )

        verify_signer(code.msg, code.sig, code.human, label="Human")
        verify_signer(bot_message, bot_signature, code.bot, label="Bot")

        updated = replace(request, status=AuthStatus.CLAIMED, claimed_at=utcnow_iso())
        if not self.stores.auth_requests.transition(
            code.req_id, request, updated, ttl=settings.claimed_auth_request_ttl_seconds
        ):
            raise AuthorizationError("Auth request already claimed")

        # The request is spent from here on, even if the entity write fails.
        oracle, created = bind_bot_oracle(
            self.repo,
            bot_wallet=code.bot,
            name=code.oracle,
            github_username=code.github,
            birth_issue=code.issue,
            owner_wallet=code.human,
        )
        self.session.commit()
        logger.info("Auth request %s claimed by bot %s as %s", code.req_id, code.bot, oracle.name)
        return OracleLogin(oracle=oracle, token=oracle_token(oracle), created=created)
