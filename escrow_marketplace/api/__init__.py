"""REST API and in-process client for the escrow marketplace."""

from .routes import create_app
from .client import MarketplaceClient

__all__ = ["create_app", "MarketplaceClient"]
