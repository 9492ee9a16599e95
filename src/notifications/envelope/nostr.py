"""Nostr event model: canonical id, BIP-340 Schnorr signatures."""

import hashlib
import json
import secrets
from dataclasses import dataclass, field, replace

from coincurve.keys import PrivateKey, PublicKeyXOnly

from notifications.errors import EnvelopeError

KIND_CHAT_MESSAGE = 14
KIND_SEAL = 13
KIND_GIFT_WRAP = 1059

Tags = tuple[tuple[str, ...], ...]


def _freeze_tags(tags) -> Tags:
    return tuple(tuple(str(value) for value in tag) for tag in tags or ())


@dataclass(frozen=True)
class NostrEvent:
    """A Nostr event. Rumors (inner messages) carry an id but no signature."""

    pubkey: str
    created_at: int
    kind: int
    content: str
    tags: Tags = field(default_factory=tuple)
    id: str = ""
    sig: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze_tags(self.tags))

    def compute_id(self) -> str:
        serialized = json.dumps(
            [0, self.pubkey, self.created_at, self.kind, [list(tag) for tag in self.tags], self.content],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def with_id(self) -> "NostrEvent":
        return replace(self, id=self.compute_id())

    def sign(self, private_key_hex: str) -> "NostrEvent":
        """Return a copy with id and signature filled in. ``pubkey`` must match the key."""
        private_key = PrivateKey.from_hex(private_key_hex)
        if private_key.public_key.format(compressed=True)[1:].hex() != self.pubkey:
            raise EnvelopeError("Signing key does not match the event pubkey")

        event_id = self.compute_id()
        signature = private_key.sign_schnorr(bytes.fromhex(event_id), secrets.token_bytes(32))
        return replace(self, id=event_id, sig=signature.hex())

    def verify(self) -> bool:
        """True when the id matches the content and the signature is valid for ``pubkey``."""
        if not self.sig or self.id != self.compute_id():
            return False
        try:
            public_key = PublicKeyXOnly(bytes.fromhex(self.pubkey))
            return public_key.verify(bytes.fromhex(self.sig), bytes.fromhex(self.id))
        except ValueError:
            return False

    def tag_values(self, name: str) -> list[str]:
        """First value of every tag called ``name``."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
        }
        if self.sig:
            data["sig"] = self.sig
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "NostrEvent":
        try:
            return cls(
                id=data.get("id", ""),
                pubkey=data["pubkey"],
                created_at=int(data["created_at"]),
                kind=int(data["kind"]),
                tags=data.get("tags", []),
                content=data["content"],
                sig=data.get("sig", ""),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise EnvelopeError(f"Malformed event: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> "NostrEvent":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EnvelopeError("Event is not valid JSON") from exc
        if not isinstance(data, dict):
            raise EnvelopeError("Event is not a JSON object")
        return cls.from_dict(data)
