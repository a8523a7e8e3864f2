"""Reconciliation bounded context — card gateway payment reconciliation.

Reconciles VictoriaBank authorization, completion and reversal messages
arriving over the IPN and browser-return channels into a single payment
record per authorization, and drives capture/void/refund requests.
"""

import structlog
from protean.domain import Domain

reconciliation = Domain(name="reconciliation")

logger = structlog.get_logger(__name__)
