"""Identity binding: wallet sign-in, GitHub proofs, and Merkle assignment claims.

Every path ends in the same place: a wallet is tied to a GitHub login and, for
bots, to an Oracle persona. Writes to the entity store follow the
find-by-unique-field, update-else-create pattern so repeating a request with
identical input leaves the same records behind.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from oraclenet_identity.core.errors import (
    AuthorizationError,
    NotFoundError,
    UpstreamError,
    VerificationError,
)
from oraclenet_identity.core.security import create_access_token, verify_signer
from oraclenet_identity.core.settings import settings
from oraclenet_identity.db.time import isoformat_ms, utcnow_iso
from oraclenet_identity.models import Human, Oracle
from oraclenet_identity.repositories.identity_repo import IdentityRepository
from oraclenet_identity.services.github import (
    GitHubClient,
    IssueRef,
    parse_gist_id,
    parse_issue_url,
)
from oraclenet_identity.services.merkle import Assignment, build_root, verify_proof
from oraclenet_identity.services.stores import (
    BirthAuthor,
    BotAssignmentRecord,
    MerkleRootRecord,
    NonceRecord,
    StateStores,
    VerifiedWallet,
)

logger = logging.getLogger(__name__)

NO_NONCE_MESSAGE = "No nonce found. Call /nonce first"
NOT_VERIFIED_MESSAGE = "Human not verified. Run verify-github first."
ISSUE_BODY_PREVIEW_CHARS = 500


def sign_in_message(nonce: str, timestamp_ms: int) -> str:
    """Return the exact text a wallet signs to redeem `nonce`."""
    moment = datetime.fromtimestamp(timestamp_ms // 1000, UTC).replace(
        microsecond=(timestamp_ms % 1000) * 1000
    )
    return f"{settings.sign_in_statement}\n\nNonce: {nonce}\nTimestamp: {isoformat_ms(moment)}"


def human_token(human: Human) -> str:
    return create_access_token(human.id, {"type": "human", "wallet": human.wallet_address})


def oracle_token(oracle: Oracle) -> str:
    return create_access_token(oracle.id, {"type": "oracle", "wallet": oracle.bot_wallet or ""})


def oracle_name_from_message(message: str) -> str | None:
    """Pull ``oracle_name`` out of a JSON-formatted signed message, if present."""
    try:
        payload = json.loads(message)
    except ValueError:
        return None
    if isinstance(payload, dict):
        name = payload.get("oracle_name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def bind_bot_oracle(
    repo: IdentityRepository,
    *,
    bot_wallet: str,
    name: str,
    github_username: str | None,
    birth_issue: int,
    birth_repo: str | None = None,
    owner_wallet: str | None = None,
) -> tuple[Oracle, bool]:
    """Attach `bot_wallet` to the Oracle it proved it may become.

    Looks the Oracle up by bot wallet, then by birth issue (only when a birth
    repository is known). When the birth issue already belongs to another
    Oracle, the bot wallet moves onto that Oracle. Returns ``(oracle, created)``.

    Raises:
        AuthorizationError: The Oracle born from the issue signs with a
            different bot wallet.
    """
    wallet = bot_wallet.lower()
    oracle = repo.get_oracle_by_bot_wallet(wallet)
    target_repo = birth_repo if birth_repo is not None else (oracle.birth_repo if oracle else None)
    if target_repo is not None:
        born = repo.get_oracle_by_birth(birth_issue, target_repo)
        if born is not None and (oracle is None or born.id != oracle.id):
            if born.bot_wallet and born.bot_wallet != wallet:
                raise AuthorizationError(
                    f"Oracle {born.name} is already bound to a different bot wallet"
                )
            if oracle is not None:
                # bot_wallet is unique; release it before rebinding.
                logger.info("Moving bot %s from oracle %s to %s", wallet, oracle.name, born.name)
                oracle.bot_wallet = None
                repo.session.flush()
            oracle = born

    if oracle is None:
        oracle = repo.create_oracle(
            name=name,
            bot_wallet=wallet,
            owner_wallet=owner_wallet,
            github_username=github_username,
            birth_issue=birth_issue,
            birth_repo=birth_repo,
            approved=True,
        )
        return oracle, True

    oracle.name = name
    oracle.bot_wallet = wallet
    oracle.github_username = github_username
    oracle.birth_issue = birth_issue
    if birth_repo is not None:
        oracle.birth_repo = birth_repo
    if owner_wallet is not None:
        oracle.owner_wallet = owner_wallet.lower()
    oracle.approved = True
    repo.session.flush()
    return oracle, False


@dataclass(frozen=True)
class SignInResult:
    human: Human
    oracles: list[Oracle]
    token: str
    created: bool


@dataclass(frozen=True)
class OracleLogin:
    oracle: Oracle
    token: str
    created: bool


@dataclass(frozen=True)
class IssueProofResult:
    github_username: str
    wallet: str
    human_updated: bool
    oracles_updated: int


@dataclass(frozen=True)
class IdentityResult:
    github_username: str
    birth_issue: int
    wallet: str
    oracle_name: str
    created: bool
    human: Human
    oracle: Oracle
    token: str


@dataclass(frozen=True)
class AssignResult:
    merkle_root: str
    bots: int
    indexed: int
    github_username: str


class IdentityBinder:
    """Binds wallets, GitHub accounts, and Oracle personas."""

    def __init__(self, session: Session, stores: StateStores, github: GitHubClient) -> None:
        self.session = session
        self.repo = IdentityRepository(session)
        self.stores = stores
        self.github = github

    # --- wallet sign-in ------------------------------------------------------------
    def issue_nonce(self, address: str) -> tuple[str, str]:
        """Store a fresh nonce for `address`, replacing any earlier one.

        Returns:
            ``(nonce, message)`` where `message` is the text to sign.
        """
        nonce = uuid.uuid4().hex[:8]
        timestamp_ms = int(datetime.now(UTC).timestamp() * 1000)
        self.stores.nonces.issue(address, NonceRecord(nonce=nonce, timestamp=timestamp_ms))
        return nonce, sign_in_message(nonce, timestamp_ms)

    def _redeem_nonce(self, address: str, signature: str) -> None:
        record = self.stores.nonces.get(address)
        if record is None:
            raise NotFoundError(NO_NONCE_MESSAGE)
        verify_signer(sign_in_message(record.nonce, record.timestamp), signature, address)
        if not self.stores.nonces.redeem(address, record):
            raise NotFoundError(NO_NONCE_MESSAGE)

    def verify_wallet(self, address: str, signature: str, name: str | None = None) -> SignInResult:
        """Redeem the wallet's nonce and find-or-create its Human."""
        self._redeem_nonce(address, signature)

        verified = self.stores.verified.get(address)
        human, created = self.repo.upsert_human(
            wallet=address,
            github_username=verified.github_username if verified else None,
            display_name=name,
        )
        self.session.commit()
        if created:
            logger.info("Created human %s for wallet %s", human.id, human.wallet_address)

        oracles = self.repo.list_oracles_for_wallet(address)
        return SignInResult(human=human, oracles=oracles, token=human_token(human), created=created)

    def link(self, address: str, signature: str, oracle_name: str) -> OracleLogin:
        """Bind a nonce-signing wallet to an existing Oracle as its bot wallet."""
        self._redeem_nonce(address, signature)

        oracle = self.repo.get_oracle_by_name(oracle_name)
        if oracle is None:
            raise NotFoundError(f'Oracle "{oracle_name}" not found')
        wallet = address.lower()
        if oracle.bot_wallet and oracle.bot_wallet != wallet:
            raise AuthorizationError("Oracle already linked to different wallet")
        other = self.repo.get_oracle_by_bot_wallet(wallet)
        if other is not None and other.id != oracle.id:
            raise AuthorizationError(f"Wallet already linked to Oracle {other.name}")

        oracle.bot_wallet = wallet
        self.session.commit()
        logger.info("Linked wallet %s to oracle %s", wallet, oracle.name)
        return OracleLogin(oracle=oracle, token=oracle_token(oracle), created=False)

    # --- GitHub proofs -------------------------------------------------------------
    async def verify_github_gist(self, gist_url: str, signer: str) -> VerifiedWallet:
        """Check a gist holding ``{message, signature}`` signed by `signer`."""
        gist = await self.github.fetch_gist(parse_gist_id(gist_url))
        if not gist.files:
            raise VerificationError("Gist has no files")

        try:
            proof = json.loads(gist.files[0].content)
        except ValueError as err:
            raise VerificationError("Invalid proof JSON in gist") from err
        if not isinstance(proof, dict) or not isinstance(proof.get("message"), str):
            raise VerificationError("Invalid proof JSON in gist")

        verify_signer(proof["message"], str(proof.get("signature", "")), signer)

        if not gist.owner_login:
            raise VerificationError("Could not determine gist owner")

        record = VerifiedWallet(
            github_username=gist.owner_login,
            verified_at=utcnow_iso(),
            gist_url=gist_url,
        )
        self.stores.verified.put(signer, record)
        logger.info("Wallet %s verified as GitHub user %s via gist", signer.lower(), gist.owner_login)
        return record

    async def verify_github_issue(
        self, wallet: str, issue_url: str, signature: str, message: str
    ) -> IssueProofResult:
        """Check a signed wallet plus an issue that mentions it."""
        verify_signer(message, signature, wallet)
        ref = parse_issue_url(issue_url, label="GitHub issue")
        issue = await self.github.fetch_issue(ref)

        if not issue.mentions(wallet):
            raise VerificationError("Issue does not contain your wallet address")
        if not issue.author_login:
            raise VerificationError("Could not determine issue author")
        github_username = issue.author_login

        self.stores.verified.put(
            wallet, VerifiedWallet(github_username=github_username, verified_at=utcnow_iso())
        )

        human = self.repo.get_human_by_wallet(wallet)
        if human is not None:
            human.github_username = github_username
        oracles = self.repo.list_oracles_for_wallet(wallet)
        for oracle in oracles:
            oracle.github_username = github_username
            if oracle.has_generic_name:
                oracle.name = github_username
            if oracle.birth_issue:
                oracle.approved = True
        self.session.commit()

        logger.info("Wallet %s verified as GitHub user %s via issue", wallet.lower(), github_username)
        return IssueProofResult(
            github_username=github_username,
            wallet=wallet.lower(),
            human_updated=human is not None,
            oracles_updated=len(oracles),
        )

    def check_verified(self, wallet: str) -> VerifiedWallet | None:
        return self.stores.verified.get(wallet)

    def revoke_verification(self, wallet: str, signature: str, message: str) -> str:
        """Drop a wallet's verification and bot index after it signs off."""
        verify_signer(message, signature, wallet)
        self.stores.verified.delete(wallet)
        self.stores.roots.delete_bot(wallet)
        logger.info("Revoked verification for %s", wallet.lower())
        return wallet.lower()

    async def _birth_issue_author(self, ref: IssueRef) -> str:
        cached = self.stores.birth_authors.get(ref.slug)
        if cached is not None:
            return cached.author

        issue = await self.github.fetch_issue(ref, label="birth issue")
        if not issue.author_login:
            raise VerificationError("Could not determine birth issue author")
        self.stores.birth_authors.put(
            ref.slug, BirthAuthor(author=issue.author_login, fetched_at=utcnow_iso())
        )
        return issue.author_login

    async def verify_identity(
        self,
        wallet: str,
        verification_issue_url: str,
        birth_issue_url: str,
        signature: str,
        message: str,
    ) -> IdentityResult:
        """Single-step proof: wallet signature, verification issue, birth issue.

        The verification issue must mention the wallet, and both issues must
        share an author. The wallet does not have to appear in the birth issue.
        """
        verify_signer(message, signature, wallet)

        verification_ref = parse_issue_url(verification_issue_url, label="verification issue")
        verification = await self.github.fetch_issue(verification_ref, label="verification issue")
        if not verification.mentions(wallet):
            raise VerificationError(
                "Verification issue does not contain your wallet address",
                debug={
                    "looking_for": wallet.lower(),
                    "issue_title": verification.title or "(no title)",
                    "issue_body_preview": (verification.body or "(no body)")[
                        :ISSUE_BODY_PREVIEW_CHARS
                    ],
                    "issue_author": verification.author_login or "(unknown)",
                },
            )
        if not verification.author_login:
            raise VerificationError("Could not determine verification issue author")
        github_username = verification.author_login

        birth_ref = parse_issue_url(birth_issue_url, label="birth issue")
        birth_author = await self._birth_issue_author(birth_ref)
        if birth_author.lower() != github_username.lower():
            raise VerificationError(
                "GitHub user mismatch: verification issue and birth issue must be created "
                "by the same user",
                debug={"verification_author": github_username, "birth_author": birth_author},
            )

        oracle_name = oracle_name_from_message(message) or github_username
        self.stores.verified.put(
            wallet, VerifiedWallet(github_username=github_username, verified_at=utcnow_iso())
        )

        human, _ = self.repo.upsert_human(wallet=wallet, github_username=github_username)
        oracle = self.repo.get_oracle_by_birth(birth_ref.number, birth_ref.repo_full_name)
        created = oracle is None
        if oracle is None:
            oracle = self.repo.create_oracle(
                name=oracle_name,
                owner_wallet=wallet,
                github_username=github_username,
                birth_issue=birth_ref.number,
                birth_repo=birth_ref.repo_full_name,
                approved=True,
            )
        else:
            if oracle.has_generic_name:
                oracle.name = oracle_name
            oracle.owner_wallet = wallet.lower()
            oracle.github_username = github_username
            oracle.approved = True
        self.session.commit()

        logger.info(
            "Bound wallet %s, GitHub user %s and oracle %s (%s)",
            wallet.lower(),
            github_username,
            oracle.name,
            birth_ref.slug,
        )
        return IdentityResult(
            github_username=github_username,
            birth_issue=birth_ref.number,
            wallet=wallet.lower(),
            oracle_name=oracle.name,
            created=created,
            human=human,
            oracle=oracle,
            token=human_token(human),
        )

    # --- Merkle assignments ----------------------------------------------------------
    def assign(
        self,
        merkle_root: str,
        assignments: list[Assignment],
        signature: str,
        message: str,
        human_wallet: str,
    ) -> AssignResult:
        """Commit a verified human's signed batch of bot assignments.

        The root record is written first. The per-bot index is written after,
        one key at a time; a failed index write is logged and counted rather
        than rolled back, since the root record alone is enough to claim.
        """
        verified = self.stores.verified.get(human_wallet)
        if verified is None:
            raise AuthorizationError(NOT_VERIFIED_MESSAGE)

        computed = build_root(assignments)
        if computed.lower() != merkle_root.lower():
            raise VerificationError(
                f"Merkle root mismatch: expected {merkle_root}, computed {computed}"
            )

        human = verify_signer(message, signature, human_wallet)
        root = merkle_root.lower()
        self.stores.roots.put_root(
            root,
            MerkleRootRecord(
                human_wallet=human,
                github_username=verified.github_username,
                assignments=[assignment.to_dict() for assignment in assignments],
                assigned_at=utcnow_iso(),
            ),
        )

        indexed = 0
        for assignment in assignments:
            try:
                self.stores.roots.put_bot(
                    assignment.bot,
                    BotAssignmentRecord(
                        merkle_root=root,
                        oracle=assignment.oracle,
                        issue=assignment.issue,
                        human_wallet=human,
                        github_username=verified.github_username,
                    ),
                )
            except UpstreamError as err:
                logger.warning("Failed to index bot %s under root %s: %s", assignment.bot, root, err)
                continue
            indexed += 1

        logger.info("Human %s committed root %s for %d bots", human, root, len(assignments))
        return AssignResult(
            merkle_root=merkle_root,
            bots=len(assignments),
            indexed=indexed,
            github_username=verified.github_username,
        )

    def claim(
        self,
        signature: str,
        message: str,
        bot_wallet: str,
        leaf: Assignment,
        proof: list[str],
        merkle_root: str,
    ) -> OracleLogin:
        """Let a bot prove membership in a committed root and become its Oracle."""
        record = self.stores.roots.get_root(merkle_root)
        if record is None:
            raise NotFoundError("Merkle root not found. Human must run assign first.")

        stored = next(
            (
                Assignment.from_mapping(item)
                for item in record.assignments
                if str(item.get("bot", "")).lower() == bot_wallet.lower()
            ),
            None,
        )
        if stored is None:
            raise AuthorizationError("Bot not in this Merkle root assignments")
        if (
            leaf.bot.lower() != bot_wallet.lower()
            or stored.oracle != leaf.oracle
            or stored.issue != leaf.issue
        ):
            raise VerificationError("Leaf data mismatch with stored assignment")
        if not verify_proof(merkle_root, leaf, proof):
            raise VerificationError("Invalid Merkle proof")

        verify_signer(message, signature, bot_wallet)

        oracle, created = bind_bot_oracle(
            self.repo,
            bot_wallet=bot_wallet,
            name=leaf.oracle,
            github_username=record.github_username,
            birth_issue=leaf.issue,
            birth_repo=leaf.github_repo or stored.github_repo,
            owner_wallet=record.human_wallet,
        )
        self.session.commit()
        logger.info("Bot %s claimed oracle %s via root %s", bot_wallet.lower(), oracle.name, merkle_root)
        return OracleLogin(oracle=oracle, token=oracle_token(oracle), created=created)
