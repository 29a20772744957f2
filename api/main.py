"""
Checkout Reconciler API - Main Application.

FastAPI application exposing checkout issuance, the MercadoPago webhook and
purchase status queries.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from services.settings import get_settings

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Checkout Reconciler API",
    description="MercadoPago Checkout Pro issuance and payment reconciliation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - the storefront calls /checkout and /purchases from the browser
# TODO: Restrict origins to the storefront domain once it is configurable
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "checkout-reconciler-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Checkout Reconciler API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import checkout, purchases, webhooks

app.include_router(checkout.router, prefix="/api/v1", tags=["Checkout"])
app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])
app.include_router(purchases.router, prefix="/api/v1", tags=["Purchases"])
