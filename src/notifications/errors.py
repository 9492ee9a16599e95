"""Notification failures."""


class EnvelopeError(Exception):
    """A message could not be encrypted, decrypted, signed or verified."""


class RelayError(Exception):
    """The relay refused or never acknowledged an event."""
