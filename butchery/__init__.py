"""Butcher shop storefront: API server, storefront client and shared pricing rules."""

__version__ = "1.0.0"
