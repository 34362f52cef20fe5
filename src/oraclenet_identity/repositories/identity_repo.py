"""Data access helpers for humans and Oracles."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from oraclenet_identity.models import Human, Oracle

__all__ = ["IdentityRepository"]


class IdentityRepository:
    """Thin wrapper around the entity store.

    Lookups return ``None`` when nothing matches; callers branch on that to
    update or create. Nothing here commits; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # --- humans -----------------------------------------------------------------
    def get_human_by_wallet(self, wallet: str) -> Human | None:
        return self.session.scalars(
            select(Human).where(Human.wallet_address == wallet.lower())
        ).first()

    def create_human(
        self,
        *,
        wallet: str,
        github_username: str | None = None,
        display_name: str | None = None,
    ) -> Human:
        human = Human(
            wallet_address=wallet.lower(),
            github_username=github_username,
            display_name=display_name,
        )
        self.session.add(human)
        self.session.flush()
        return human

    def upsert_human(
        self,
        *,
        wallet: str,
        github_username: str | None = None,
        display_name: str | None = None,
    ) -> tuple[Human, bool]:
        """Return ``(human, created)``; only non-empty fields overwrite existing values."""
        human = self.get_human_by_wallet(wallet)
        if human is None:
            return (
                self.create_human(
                    wallet=wallet, github_username=github_username, display_name=display_name
                ),
                True,
            )
        if github_username:
            human.github_username = github_username
        if display_name and not human.display_name:
            human.display_name = display_name
        self.session.flush()
        return human, False

    # --- oracles ----------------------------------------------------------------
    def get_oracle_by_bot_wallet(self, wallet: str) -> Oracle | None:
        return self.session.scalars(
            select(Oracle).where(Oracle.bot_wallet == wallet.lower())
        ).first()

    def get_oracle_by_birth(self, birth_issue: int, birth_repo: str | None = None) -> Oracle | None:
        stmt = select(Oracle).where(Oracle.birth_issue == birth_issue)
        if birth_repo is not None:
            stmt = stmt.where(func.lower(Oracle.birth_repo) == birth_repo.lower())
        return self.session.scalars(stmt.order_by(Oracle.created_at)).first()

    def get_oracle_by_name(self, name: str) -> Oracle | None:
        return self.session.scalars(select(Oracle).where(Oracle.name == name)).first()

    def list_oracles_for_wallet(self, wallet: str) -> list[Oracle]:
        """Oracles owned by `wallet` or signing with it."""
        lowered = wallet.lower()
        return list(
            self.session.scalars(
                select(Oracle)
                .where((Oracle.owner_wallet == lowered) | (Oracle.bot_wallet == lowered))
                .order_by(Oracle.name)
            )
        )

    def create_oracle(
        self,
        *,
        name: str,
        bot_wallet: str | None = None,
        owner_wallet: str | None = None,
        github_username: str | None = None,
        birth_issue: int | None = None,
        birth_repo: str | None = None,
        approved: bool = False,
    ) -> Oracle:
        oracle = Oracle(
            name=name,
            bot_wallet=bot_wallet.lower() if bot_wallet else None,
            owner_wallet=owner_wallet.lower() if owner_wallet else None,
            github_username=github_username,
            birth_issue=birth_issue,
            birth_repo=birth_repo,
            approved=approved,
            karma=0,
        )
        self.session.add(oracle)
        self.session.flush()
        return oracle
