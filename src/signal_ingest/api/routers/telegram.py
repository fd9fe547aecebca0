"""Telegram ingestion router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ...config import AppConfig
from ...errors import UpstreamError
from ...ingestion import IngestionLoop
from ...sources.bot_api import BotApiSource
from ..dependencies import get_app_config, get_ingestion_loop
from ..schemas.signals import WebhookSetupResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/poll")
async def poll(loop: IngestionLoop = Depends(get_ingestion_loop)):
    """Run one ingestion cycle.

    Returns the cycle summary, a skipped/conflict variant, or HTTP 500
    with {"error": message} for fatal failures.
    """
    try:
        summary = await loop.run_cycle()
    except Exception as e:
        logger.exception("Ingestion cycle failed")
        return JSONResponse(status_code=500, content={"error": str(e)})
    return summary.to_dict()


@router.get("/webhook")
async def webhook_ping() -> dict:
    """Reachability check used when registering the webhook."""
    return {"ok": True}


@router.post("/webhook")
async def webhook(request: Request, loop: IngestionLoop = Depends(get_ingestion_loop)):
    """Receive one pushed Bot API update."""
    try:
        update = await request.json()
    except ValueError:
        return {"ok": True, "ignored": True}
    if not isinstance(update, dict):
        return {"ok": True, "ignored": True}

    try:
        return await loop.process_update(update)
    except Exception as e:
        logger.exception("Webhook update failed")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/webhook/setup", response_model=WebhookSetupResponse)
async def setup_webhook(app_config: AppConfig = Depends(get_app_config)):
    """Register TELEGRAM_WEBHOOK_URL as the bot's push endpoint."""
    telegram = app_config.telegram
    if not telegram.bot_token:
        raise HTTPException(status_code=400, detail="TELEGRAM_BOT_TOKEN is not configured")
    if not telegram.webhook_url:
        raise HTTPException(status_code=400, detail="TELEGRAM_WEBHOOK_URL is not configured")

    source = BotApiSource(token=telegram.bot_token, api_base=telegram.api_base)
    try:
        result = await source.set_webhook(telegram.webhook_url)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=f"setWebhook failed: {e}") from e
    finally:
        await source.close()

    logger.info("Webhook registered at %s", telegram.webhook_url)
    return WebhookSetupResponse(success=True, webhook=telegram.webhook_url, telegram=result)
