"""Cashu token serialisation.

Tokens are the only form in which proofs leave the checkout: the seller's
payment, the donation and any overpaid-fee change are each handed over as a
single token string inside an order message.

Two formats are supported:
- V4 ``cashuB``: CBOR, proofs grouped by keyset, base64url without padding
- V3 ``cashuA``: JSON, base64url without padding
"""

import base64
import json
from dataclasses import dataclass

import cbor2

from settlement.ledger.proofs import Proof, ProofSet

V3_PREFIX = "cashuA"
V4_PREFIX = "cashuB"


class TokenDecodeError(ValueError):
    """The string is not a well-formed Cashu token."""


@dataclass(frozen=True)
class Token:
    mint_url: str
    proofs: ProofSet
    unit: str = "sat"
    memo: str | None = None

    @property
    def amount(self) -> int:
        return self.proofs.total

    def encode(self, version: int = 4) -> str:
        if version == 4:
            return _encode_v4(self)
        if version == 3:
            return _encode_v3(self)
        raise ValueError(f"Unsupported token version: {version}. Use 3 or 4.")


def encode_token(mint_url: str, proofs: ProofSet, *, unit: str = "sat", memo: str | None = None, version: int = 4) -> str:
    """Serialise ``proofs`` from ``mint_url`` into a single token string. No network call."""
    return Token(mint_url=mint_url, proofs=proofs, unit=unit, memo=memo).encode(version)


def decode_token(token: str) -> Token:
    """Parse a ``cashuA`` or ``cashuB`` token string."""
    token = token.strip()
    try:
        if token.startswith(V4_PREFIX):
            return _decode_v4(token[len(V4_PREFIX) :])
        if token.startswith(V3_PREFIX):
            return _decode_v3(token[len(V3_PREFIX) :])
    except (KeyError, TypeError, ValueError, IndexError, cbor2.CBORDecodeError) as exc:
        raise TokenDecodeError(f"Malformed token: {exc}") from exc
    raise TokenDecodeError(f"Unknown token version: {token[:7]!r}")


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64decode(data: str) -> bytes:
    # Add correct padding – (-len) % 4 equals 0,1,2,3
    return base64.urlsafe_b64decode(data + "=" * ((-len(data)) % 4))


def _encode_v3(token: Token) -> str:
    payload = {
        "token": [{"mint": token.mint_url, "proofs": [proof.to_dict() for proof in token.proofs]}],
        "unit": token.unit,
    }
    if token.memo:
        payload["memo"] = token.memo
    return V3_PREFIX + _b64encode(json.dumps(payload, separators=(",", ":")).encode())


def _decode_v3(encoded: str) -> Token:
    payload = json.loads(_b64decode(encoded).decode())
    entries = payload["token"]
    if not entries:
        raise ValueError("token has no entries")

    mint_url = entries[0]["mint"]
    proofs: list[Proof] = []
    for entry in entries:
        if entry["mint"] != mint_url:
            raise ValueError("multi-mint tokens are not supported")
        proofs.extend(Proof.from_dict(proof) for proof in entry["proofs"])

    return Token(mint_url=mint_url, proofs=ProofSet.of(proofs), unit=payload.get("unit", "sat"), memo=payload.get("memo"))


def _encode_v4(token: Token) -> str:
    # Group proofs by keyset ID, preserving first-seen order
    by_keyset: dict[str, list[Proof]] = {}
    for proof in token.proofs:
        by_keyset.setdefault(proof.keyset_id, []).append(proof)

    payload = {
        "m": token.mint_url,
        "u": token.unit,
        "t": [
            {
                "i": bytes.fromhex(keyset_id),
                "p": [{"a": proof.amount, "s": proof.secret, "c": bytes.fromhex(proof.C)} for proof in proofs],
            }
            for keyset_id, proofs in by_keyset.items()
        ],
    }
    if token.memo:
        payload["d"] = token.memo
    return V4_PREFIX + _b64encode(cbor2.dumps(payload))


def _decode_v4(encoded: str) -> Token:
    payload = cbor2.loads(_b64decode(encoded))

    proofs: list[Proof] = []
    for entry in payload["t"]:
        keyset_id = entry["i"].hex()
        for proof in entry["p"]:
            proofs.append(Proof(amount=int(proof["a"]), keyset_id=keyset_id, secret=proof["s"], C=proof["c"].hex()))

    return Token(mint_url=payload["m"], proofs=ProofSet.of(proofs), unit=payload.get("u", "sat"), memo=payload.get("d"))
