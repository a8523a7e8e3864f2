"""Reconciliation FastAPI application.

Receives VictoriaBank notifications and return redirects, serves the
off-site authorization form and exposes merchant capture/void/refund
actions. Every request runs inside the reconciliation domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# Gateway settings are read from VICTORIABANK_* environment variables.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reconciliation.domain import reconciliation
from reconciliation.utils.logging import configure_logging

configure_logging()
reconciliation.init()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="VictoriaBank Reconciliation API",
    description="Card gateway IPN and return reconciliation",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the reconciliation domain context for each request."""
    with reconciliation.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from reconciliation.api import gateway_router, payment_router  # noqa: E402
from reconciliation.registry import get_registry  # noqa: E402

app.include_router(gateway_router)
app.include_router(payment_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": reconciliation.name,
            "gateways": list(get_registry().gateway_ids()),
        }
    )
