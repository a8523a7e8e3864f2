"""Reconciliation domain API package."""

from reconciliation.api.routes import gateway_router, payment_router

__all__ = ["gateway_router", "payment_router"]
