"""Proof and ProofSet — immutable bearer values and their arithmetic.

A ``ProofSet`` is the explicit "remaining proofs" value threaded through a
settlement: every split returns a fresh ``keep`` set that becomes the input
of the next split, so consumed proofs never flow forward by accident.
"""

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Proof:
    """A single ecash proof issued by a mint."""

    amount: int
    keyset_id: str
    secret: str
    C: str

    def __post_init__(self) -> None:
        if self.amount < 1:
            raise ValueError(f"Proof amount must be positive, got {self.amount}")

    def to_dict(self) -> dict:
        return {"id": self.keyset_id, "amount": self.amount, "secret": self.secret, "C": self.C}

    @classmethod
    def from_dict(cls, data: dict) -> "Proof":
        return cls(
            amount=int(data["amount"]),
            keyset_id=data["id"],
            secret=data["secret"],
            C=data["C"],
        )


@dataclass(frozen=True)
class ProofSet:
    proofs: tuple[Proof, ...] = ()

    @classmethod
    def of(cls, proofs: Iterable[Proof]) -> "ProofSet":
        return cls(tuple(proofs))

    @classmethod
    def empty(cls) -> "ProofSet":
        return cls(())

    @property
    def total(self) -> int:
        return sum(proof.amount for proof in self.proofs)

    @property
    def secrets(self) -> frozenset[str]:
        return frozenset(proof.secret for proof in self.proofs)

    @property
    def keyset_ids(self) -> frozenset[str]:
        return frozenset(proof.keyset_id for proof in self.proofs)

    def is_empty(self) -> bool:
        return not self.proofs

    def filter_keysets(self, keyset_ids: Iterable[str]) -> "ProofSet":
        """Only the proofs issued under one of ``keyset_ids``."""
        allowed = set(keyset_ids)
        return ProofSet(tuple(proof for proof in self.proofs if proof.keyset_id in allowed))

    def without(self, other: "ProofSet") -> "ProofSet":
        spent = other.secrets
        return ProofSet(tuple(proof for proof in self.proofs if proof.secret not in spent))

    def to_json(self) -> str:
        """Compact JSON of the proofs, the format carried as a payment proof in order messages."""
        return json.dumps([proof.to_dict() for proof in self.proofs], separators=(",", ":"))

    def __add__(self, other: "ProofSet") -> "ProofSet":
        return ProofSet(self.proofs + other.proofs)

    def __iter__(self) -> Iterator[Proof]:
        return iter(self.proofs)

    def __len__(self) -> int:
        return len(self.proofs)

    def __bool__(self) -> bool:
        return bool(self.proofs)
