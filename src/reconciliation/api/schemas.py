"""Pydantic request/response schemas for the Reconciliation API.

Gateway messages arrive as form posts and are passed to the engine as plain
field dicts; only the merchant-facing admin endpoints have JSON contracts.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Admin Request Schemas
# ---------------------------------------------------------------------------
class CapturePaymentRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)


class RefundPaymentRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "amount": 50.0,
                    "currency": "MDL",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class PaymentStateResponse(BaseModel):
    """Outcome of an admin operation.

    ``state`` is None when the payment will be updated by a later IPN.
    """

    payment_id: str
    status: str
    state: str | None = None
    remote_id: str | None = None


class ContinueResponse(BaseModel):
    status: str = "continue"
    payment_id: str | None = None
