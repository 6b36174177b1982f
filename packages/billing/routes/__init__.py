"""Billing API routes."""

from packages.billing.routes import billing

__all__ = ["billing"]
