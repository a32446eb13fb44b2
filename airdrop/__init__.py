"""Local webhook receiver that opens URLs with the desktop's default handler."""

APP_NAME = "airdrop"
__version__ = "0.1.1"


class AirdropError(Exception):
    """Base class for errors raised by airdrop."""
