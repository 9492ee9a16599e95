"""Donation template — the platform's share of a sale."""


class DonationTemplate:
    name = "donation"

    @staticmethod
    def render(message) -> str:
        return f"Sale donation: {message.token}"
