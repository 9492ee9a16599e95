"""Seal and gift wrap (NIP-59) around an unsigned inner message.

    rumor  kind 14   authored by the per-order sender key, never signed
    seal   kind 13   rumor encrypted to the recipient, signed by the real identity
    wrap   kind 1059 seal encrypted to the recipient, signed by a throwaway key

Relays only ever see the wrap: a throwaway author and the recipient's ``p``
tag. Seal and wrap timestamps are pushed back by up to two days so the
publication time does not leak the moment of purchase.
"""

import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from notifications.envelope import nip44
from notifications.envelope.keys import KeyPair
from notifications.envelope.nostr import KIND_CHAT_MESSAGE, KIND_GIFT_WRAP, KIND_SEAL, NostrEvent
from notifications.errors import EnvelopeError

TWO_DAYS = 2 * 24 * 60 * 60


def _now() -> int:
    return int(time.time())


def _randomized_now() -> int:
    return _now() - secrets.randbelow(TWO_DAYS)


class Signer(ABC):
    """The buyer's real identity. Only used to sign and encrypt the seal."""

    @property
    @abstractmethod
    def public_key(self) -> str:
        ...

    @abstractmethod
    async def sign_event(self, event: NostrEvent) -> NostrEvent:
        """Return ``event`` with id and signature set."""
        ...

    @abstractmethod
    async def nip44_encrypt(self, recipient_pubkey: str, plaintext: str) -> str:
        ...

    @abstractmethod
    async def nip44_decrypt(self, sender_pubkey: str, payload: str) -> str:
        ...


class LocalSigner(Signer):
    """Signer holding a private key in memory."""

    def __init__(self, keys: KeyPair) -> None:
        self._keys = keys

    @property
    def public_key(self) -> str:
        return self._keys.public_key

    async def sign_event(self, event: NostrEvent) -> NostrEvent:
        return event.sign(self._keys.private_key)

    async def nip44_encrypt(self, recipient_pubkey: str, plaintext: str) -> str:
        return nip44.encrypt(plaintext, nip44.get_conversation_key(self._keys.private_key, recipient_pubkey))

    async def nip44_decrypt(self, sender_pubkey: str, payload: str) -> str:
        return nip44.decrypt(payload, nip44.get_conversation_key(self._keys.private_key, sender_pubkey))


@dataclass(frozen=True)
class EncryptedEnvelope:
    inner_event: NostrEvent
    seal: NostrEvent
    wrap: NostrEvent


def create_rumor(sender_pubkey: str, recipient_pubkey: str, content: str, tags=(), created_at: int | None = None) -> NostrEvent:
    """Unsigned chat message addressed to ``recipient_pubkey``."""
    tags = (("p", recipient_pubkey), *tags)
    return NostrEvent(
        pubkey=sender_pubkey,
        created_at=created_at if created_at is not None else _now(),
        kind=KIND_CHAT_MESSAGE,
        content=content,
        tags=tags,
    ).with_id()


async def seal(signer: Signer, inner_event: NostrEvent, sender_pubkey: str, recipient_pubkey: str) -> NostrEvent:
    """Encrypt the rumor to the recipient and sign it with the real identity."""
    if inner_event.sig:
        raise EnvelopeError("Inner messages must not be signed")
    if inner_event.pubkey != sender_pubkey:
        raise EnvelopeError("Inner message author does not match the sender key")

    content = await signer.nip44_encrypt(recipient_pubkey, inner_event.to_json())
    unsigned = NostrEvent(pubkey=signer.public_key, created_at=_randomized_now(), kind=KIND_SEAL, content=content)
    return await signer.sign_event(unsigned)


def wrap(sealed: NostrEvent, ephemeral_pubkey: str, ephemeral_privkey: str, recipient_pubkey: str) -> NostrEvent:
    """Encrypt the seal under a throwaway key and sign it with that key."""
    conversation_key = nip44.get_conversation_key(ephemeral_privkey, recipient_pubkey)
    unsigned = NostrEvent(
        pubkey=ephemeral_pubkey,
        created_at=_randomized_now(),
        kind=KIND_GIFT_WRAP,
        content=nip44.encrypt(sealed.to_json(), conversation_key),
        tags=(("p", recipient_pubkey),),
    )
    return unsigned.sign(ephemeral_privkey)


async def gift_wrap(
    signer: Signer,
    inner_event: NostrEvent,
    ephemeral: KeyPair,
    recipient_pubkey: str,
) -> EncryptedEnvelope:
    sealed = await seal(signer, inner_event, inner_event.pubkey, recipient_pubkey)
    wrapped = wrap(sealed, ephemeral.public_key, ephemeral.private_key, recipient_pubkey)
    return EncryptedEnvelope(inner_event=inner_event, seal=sealed, wrap=wrapped)


def unwrap(wrapped: NostrEvent, recipient_privkey: str) -> NostrEvent:
    """Open a gift wrap addressed to us and return the verified seal inside."""
    if wrapped.kind != KIND_GIFT_WRAP:
        raise EnvelopeError(f"Expected a gift wrap (kind {KIND_GIFT_WRAP}), got kind {wrapped.kind}")
    if not wrapped.verify():
        raise EnvelopeError("Gift wrap signature is invalid")

    conversation_key = nip44.get_conversation_key(recipient_privkey, wrapped.pubkey)
    sealed = NostrEvent.from_json(nip44.decrypt(wrapped.content, conversation_key))
    if sealed.kind != KIND_SEAL:
        raise EnvelopeError(f"Expected a seal (kind {KIND_SEAL}), got kind {sealed.kind}")
    if not sealed.verify():
        raise EnvelopeError("Seal signature is invalid")
    return sealed


def unseal(sealed: NostrEvent, recipient_privkey: str) -> NostrEvent:
    """Decrypt a seal and return the inner message, checking its id."""
    conversation_key = nip44.get_conversation_key(recipient_privkey, sealed.pubkey)
    rumor = NostrEvent.from_json(nip44.decrypt(sealed.content, conversation_key))
    if rumor.id != rumor.compute_id():
        raise EnvelopeError("Inner message id does not match its content")
    return rumor


def open_envelope(wrapped: NostrEvent, recipient_privkey: str) -> tuple[NostrEvent, NostrEvent]:
    """Unwrap and unseal in one go; returns ``(seal, rumor)``."""
    sealed = unwrap(wrapped, recipient_privkey)
    return sealed, unseal(sealed, recipient_privkey)
