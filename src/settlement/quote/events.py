"""Domain events for the MintQuote aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="MintQuote")
class MintQuoteCreated:
    """The mint issued a Lightning invoice for a checkout."""

    __version__ = 1

    mint_quote_id = Identifier(required=True)
    quote_id = String(required=True)
    amount = Integer(required=True)
    unit = String(required=True)
    mint_url = String(max_length=500)
    created_at = DateTime(required=True)


@settlement.event(part_of="MintQuote")
class MintQuotePaid:
    """The buyer's Lightning payment for the quote arrived at the mint."""

    __version__ = 1

    mint_quote_id = Identifier(required=True)
    quote_id = String(required=True)
    amount = Integer(required=True)
    paid_at = DateTime(required=True)


@settlement.event(part_of="MintQuote")
class MintQuoteIssued:
    """Proofs were issued for the quote.

    ``recovered`` is set when this process did not mint the proofs itself
    (the mint reported the quote as already issued).
    """

    __version__ = 1

    mint_quote_id = Identifier(required=True)
    quote_id = String(required=True)
    amount_minted = Integer(required=True)
    recovered = Boolean(required=True)
    issued_at = DateTime(required=True)
