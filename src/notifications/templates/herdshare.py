"""Herdshare template — sent to the buyer when the listing needs a signed agreement."""


class HerdshareTemplate:
    name = "herdshare"

    @staticmethod
    def render(message) -> str:
        return (
            "To finalize your purchase, sign and send the following herdshare agreement "
            f"for the dairy: {message.agreement}"
        )
