"""Settlement failures that abort a checkout before anyone is notified."""

from settlement.ledger.proofs import ProofSet


class SettlementError(Exception):
    """Proofs could not be split or handed over; the payment did not settle.

    ``unspent`` holds proofs a partial settlement already split off but never
    handed to anyone. They belong to the buyer.
    """

    def __init__(self, *args, unspent: ProofSet | None = None):
        super().__init__(*args)
        self.unspent = unspent


class InsufficientProofs(SettlementError):
    def __init__(self, needed: int, available: int):
        super().__init__(f"Insufficient proofs: need {needed} sats, have {available} sats")
        self.needed = needed
        self.available = available


class ProofsAlreadySpent(SettlementError):
    """A proof set that an earlier split already consumed was offered again."""


class ValueConservationError(SettlementError):
    """A split's outputs do not add up to its inputs minus the mint fee."""
