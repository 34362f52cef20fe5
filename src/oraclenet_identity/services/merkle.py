"""Merkle commitments over bot assignments.

Trees are bit-compatible with OpenZeppelin's ``StandardMerkleTree`` using the
leaf encoding ``["address", "string", "uint256"]``, so roots and proofs
computed offline by clients with the reference library verify here unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Final

from eth_abi import encode as abi_encode
from eth_utils import is_address, keccak, to_checksum_address

from oraclenet_identity.core.errors import ValidationError

LEAF_ENCODING: Final[list[str]] = ["address", "string", "uint256"]


@dataclass(frozen=True)
class Assignment:
    """One bot wallet assigned to an Oracle persona and its birth issue."""

    bot: str
    oracle: str
    issue: int
    github_repo: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Assignment:
        return cls(
            bot=str(data["bot"]),
            oracle=str(data["oracle"]),
            issue=int(data["issue"]),
            github_repo=data.get("github_repo"),
        )

    def leaf_tuple(self) -> tuple[str, str, int]:
        """Return the hashed fields; `github_repo` is display-only."""
        return (self.bot.lower(), self.oracle, self.issue)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"bot": self.bot, "oracle": self.oracle, "issue": self.issue}
        if self.github_repo is not None:
            data["github_repo"] = self.github_repo
        return data


def _to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def _from_hex(value: str) -> bytes:
    cleaned = value[2:] if value[:2].lower() == "0x" else value
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as err:
        raise ValidationError(f"Invalid hex value: {value}") from err
    if len(raw) != 32:
        raise ValidationError(f"Expected a 32-byte hash, got {len(raw)} bytes")
    return raw


def standard_leaf_hash(encoding: Sequence[str], values: Sequence[Any]) -> bytes:
    """Hash one ``StandardMerkleTree`` value: ``keccak256(keccak256(abi.encode(values)))``."""
    return keccak(keccak(abi_encode(list(encoding), list(values))))


def leaf_hash(assignment: Assignment) -> bytes:
    """Return the leaf for `assignment` under `LEAF_ENCODING`."""
    bot, oracle, issue = assignment.leaf_tuple()
    if not is_address(bot):
        raise ValidationError(f"Invalid bot address: {assignment.bot}")
    if issue < 0:
        raise ValidationError(f"Issue number must be non-negative, got {issue}")
    return standard_leaf_hash(LEAF_ENCODING, [to_checksum_address(bot), oracle, issue])


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two nodes in sorted order."""
    first, second = sorted((left, right))
    return keccak(first + second)


def _sibling_index(index: int) -> int:
    return index + 1 if index % 2 == 1 else index - 1


def _parent_index(index: int) -> int:
    return (index - 1) // 2


class MerkleTree:
    """Flat-array Merkle tree laid out like OpenZeppelin's implementation.

    Leaf hashes are sorted ascending, stored at the tail of a ``2n - 1`` array
    in reverse order, and parents are filled from right to left.
    """

    def __init__(self, assignments: Sequence[Assignment]) -> None:
        if not assignments:
            raise ValidationError("At least one assignment is required")
        self._layout([leaf_hash(assignment) for assignment in assignments])

    @classmethod
    def from_leaf_hashes(cls, leaves: Sequence[bytes]) -> MerkleTree:
        """Build a tree over precomputed leaf hashes of any leaf encoding."""
        if not leaves:
            raise ValidationError("At least one leaf is required")
        tree = cls.__new__(cls)
        tree._layout(list(leaves))
        return tree

    def _layout(self, leaves: list[bytes]) -> None:
        hashed = sorted(leaves)
        size = 2 * len(hashed) - 1
        tree: list[bytes] = [b""] * size
        self._index_of: dict[bytes, int] = {}
        for i, digest in enumerate(hashed):
            tree_index = size - 1 - i
            tree[tree_index] = digest
            self._index_of.setdefault(digest, tree_index)
        for i in range(size - 1 - len(hashed), -1, -1):
            tree[i] = hash_pair(tree[2 * i + 1], tree[2 * i + 2])
        self._tree = tree

    @property
    def root(self) -> str:
        return _to_hex(self._tree[0])

    def proof_for(self, assignment: Assignment) -> list[str]:
        """Return the sibling path for `assignment`, leaf to root."""
        return self.proof_for_leaf(leaf_hash(assignment))

    def proof_for_leaf(self, digest: bytes) -> list[str]:
        index = self._index_of.get(digest)
        if index is None:
            raise ValidationError("Leaf is not part of this tree")
        proof: list[str] = []
        while index > 0:
            proof.append(_to_hex(self._tree[_sibling_index(index)]))
            index = _parent_index(index)
        return proof


def build_root(assignments: Sequence[Assignment]) -> str:
    """Return the 0x-prefixed root committing to `assignments`."""
    return MerkleTree(assignments).root


def get_proof(assignments: Sequence[Assignment], assignment: Assignment) -> list[str]:
    """Return the inclusion proof for one member of `assignments`."""
    return MerkleTree(assignments).proof_for(assignment)


def verify_proof(root: str, leaf: Assignment, proof: Sequence[str]) -> bool:
    """Return True iff `leaf` folded with `proof` reproduces `root`."""
    try:
        node = leaf_hash(leaf)
        for sibling in proof:
            node = hash_pair(node, _from_hex(sibling))
        expected = _from_hex(root)
    except ValidationError:
        return False
    return node == expected
