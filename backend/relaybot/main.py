"""
Relaybot API
FastAPI application that turns inbound emails into Notion records.
"""

import logging
import os

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from relaybot.config import Settings, get_settings
from relaybot.routers import webhook
from relaybot.services.pipelines import Collaborators

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "CIIIC Relaybot"

EMAIL_ADDRESSES = {
    "events@bot.ciiic.nl": "Creates calendar events",
    "nieuwsbriefitem@bot.ciiic.nl": "Creates newsletter items",
    "*@bot.ciiic.nl": "Catch-all → creates inbox items",
}

app = FastAPI(
    title="Relaybot API",
    description="Routes inbound emails to Notion by recipient address",
    version="0.1.0",
)

app.include_router(webhook.router, prefix="/webhook", tags=["webhook"])


@app.on_event("startup")
async def log_startup_urls() -> None:
    """
    Log where the relay listens and how mail is routed.

    The port shown is taken from ``HOST_PORT`` so Docker-mapped ports are
    reported correctly. Defaults to 8000.
    """
    host_port = os.getenv("HOST_PORT", "8000")
    routing = "\n".join(f"  {address:<30} {purpose}" for address, purpose in EMAIL_ADDRESSES.items())
    logger.info(
        "%s running at http://localhost:%s\n"
        "Configure your email service to POST all *@bot.ciiic.nl mail to /webhook/email\n"
        "%s",
        SERVICE_NAME,
        host_port,
        routing,
    )


@app.get("/")
async def root():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "description": "Routes emails by recipient address",
        "endpoints": {
            "POST /webhook/email": "Unified webhook - routes by recipient address",
            "POST /webhook/test": 'Test with raw content (use "to" field for routing)',
            "GET /health": "Service health check with API status",
        },
        "emailAddresses": EMAIL_ADDRESSES,
    }


@app.get("/health")
def health(
    settings: Settings = Depends(get_settings),
    clients: Collaborators = Depends(webhook.get_collaborators),
):
    """
    Check connectivity to the record store and the mail provider.

    The AI provider is only reported as configured or not; pinging it would
    cost tokens. Returns 503 when either connectivity check fails.
    """
    notion_status = clients.store.test_connection()
    brevo_status = clients.mailer.test_connection()

    healthy = notion_status["success"] and brevo_status["success"]
    if not healthy:
        logger.warning(f"Health check degraded: notion={notion_status} brevo={brevo_status}")

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "services": {
                "notion": notion_status,
                "brevo": brevo_status,
                "anthropic": {
                    "configured": bool(settings.anthropic_api_key),
                    "model": settings.anthropic_model,
                },
                "notifications": {"configured": bool(settings.notify_webhook_url)},
            },
        },
    )
