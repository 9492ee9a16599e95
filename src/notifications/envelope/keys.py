"""secp256k1 key pairs, npub rendering and the per-order ephemeral keyring."""

from dataclasses import dataclass

import bech32
from coincurve.keys import PrivateKey

from notifications.errors import EnvelopeError


def _xonly_public_key(private_key: PrivateKey) -> str:
    return private_key.public_key.format(compressed=True)[1:].hex()


@dataclass(frozen=True)
class KeyPair:
    """Hex private key and its x-only (32 byte) public key."""

    private_key: str
    public_key: str

    @classmethod
    def generate(cls) -> "KeyPair":
        private_key = PrivateKey()
        return cls(private_key=private_key.to_hex(), public_key=_xonly_public_key(private_key))

    @classmethod
    def from_private_key(cls, private_key_hex: str) -> "KeyPair":
        try:
            private_key = PrivateKey.from_hex(private_key_hex)
        except ValueError as exc:
            raise EnvelopeError("Invalid private key") from exc
        return cls(private_key=private_key.to_hex(), public_key=_xonly_public_key(private_key))

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key!r})"


def _bech32_encode(prefix: str, hex_key: str) -> str:
    data = bech32.convertbits(bytes.fromhex(hex_key), 8, 5)
    return bech32.bech32_encode(prefix, data)


def _bech32_decode(prefix: str, encoded: str) -> str:
    hrp, data = bech32.bech32_decode(encoded)
    if hrp != prefix or data is None:
        raise EnvelopeError(f"Not a valid {prefix}: {encoded!r}")
    decoded = bech32.convertbits(data, 5, 8, False)
    if decoded is None or len(decoded) != 32:
        raise EnvelopeError(f"Not a valid {prefix}: {encoded!r}")
    return bytes(decoded).hex()


def npub_encode(public_key: str) -> str:
    return _bech32_encode("npub", public_key)


def npub_decode(npub: str) -> str:
    return _bech32_decode("npub", npub)


def normalize_pubkey(value: str) -> str:
    """Accept a hex pubkey or an npub and return lowercase hex."""
    if value.startswith("npub1"):
        return npub_decode(value)
    value = value.lower()
    if len(value) != 64 or any(char not in "0123456789abcdef" for char in value):
        raise EnvelopeError(f"Not a valid public key: {value!r}")
    return value


@dataclass(frozen=True)
class DirectionKeys:
    """The two throwaway identities used for messages in one direction.

    ``sender`` is the author of the inner message; ``receiver`` signs the
    outer gift wrap.
    """

    sender: KeyPair
    receiver: KeyPair


class EphemeralKeyring:
    """Per-order ephemeral keys, generated on first use and reused for the whole order.

    Keys are looked up by recipient role ("seller", "buyer", "donation").
    """

    def __init__(self) -> None:
        self._keys: dict[str, DirectionKeys] = {}

    def for_role(self, role: str) -> DirectionKeys:
        keys = self._keys.get(role)
        if keys is None:
            keys = DirectionKeys(sender=KeyPair.generate(), receiver=KeyPair.generate())
            self._keys[role] = keys
        return keys

    @property
    def roles(self) -> list[str]:
        return list(self._keys)

    def discard(self) -> None:
        self._keys.clear()
