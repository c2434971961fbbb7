"""Craftstore FastAPI application.

Web server for the game-server store: cart pricing and checkout, payment
gateway webhooks and the fulfillment queue consumed by the game-server
executor. Every request runs inside the storefront domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay of domain.toml is applied.
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storefront.domain import storefront
from storefront.utils.logging import bind_request

storefront.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Craftstore API",
    description="Game-server store: pricing, orders, payment webhooks and fulfillment",
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
    """Push the storefront domain context and request log context for each request."""
    bind_request(request.method, request.url.path)
    try:
        with storefront.domain_context():
            response = await call_next(request)
        return response
    finally:
        structlog.contextvars.clear_contextvars()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import (  # noqa: E402
    fulfillment_router,
    install_exception_handlers,
    store_router,
    webhook_router,
)

app.include_router(store_router)
app.include_router(webhook_router)
app.include_router(fulfillment_router)
install_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
