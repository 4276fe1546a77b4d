"""
Provider Notification Service — Telegram messages about onboarding progress.

Fire-and-forget: failures are logged and never raised. Providers without a
linked Telegram account are skipped.
"""

import logging
from typing import Any

import httpx

from config import settings

logger = logging.getLogger(__name__)


async def send_message(
    telegram_id: int | None,
    text: str,
    reply_markup: dict | None = None,
    parse_mode: str = "HTML",
) -> bool:
    """
    Send a Telegram message to a provider via Bot API.

    Returns:
        True if message was sent successfully, False otherwise.
    """
    if not telegram_id:
        return False

    token = settings.TELEGRAM_BOT_TOKEN
    if not token:
        logger.debug("TELEGRAM_BOT_TOKEN not configured, notification skipped")
        return False

    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload: dict[str, Any] = {
        "chat_id": telegram_id,
        "text": text,
        "parse_mode": parse_mode,
    }
    if reply_markup:
        payload["reply_markup"] = reply_markup

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(url, json=payload)
    except httpx.HTTPError as e:
        logger.error("Notification error: telegram_id=%s, error=%s", telegram_id, e)
        return False

    if resp.status_code != 200:
        logger.warning(
            "Notification failed: telegram_id=%s, status=%s, body=%s",
            telegram_id, resp.status_code, resp.text[:200],
        )
        return False

    logger.info("Notification sent: telegram_id=%s, text_preview='%s'", telegram_id, text[:80])
    return True


# ── Notification Templates ─────────────────────────────────

async def notify_service_data_saved(telegram_id: int | None, needs_verification: bool) -> bool:
    next_step = (
        "One last step: verify your identity with a photo of your document and a selfie."
        if needs_verification
        else "We're finishing your setup now."
    )
    return await send_message(telegram_id, f"✅ <b>Service saved!</b>\n\n{next_step}")


async def notify_verification_submitted(telegram_id: int | None) -> bool:
    text = (
        "🪪 <b>Verification Submitted</b>\n\n"
        "Our team will review your documents within <b>24-48 hours</b>.\n"
        "We'll notify you right here once it's processed."
    )
    return await send_message(telegram_id, text)


async def notify_onboarding_completed(telegram_id: int | None) -> bool:
    text = (
        "🎉 <b>Setup complete!</b>\n\n"
        "Your provider profile is ready. Configure your services to start "
        "receiving bookings."
    )
    return await send_message(telegram_id, text)


async def notify_location(telegram_id: int | None, found: bool) -> bool:
    text = "📍 Location saved." if found else "⚠️ We couldn't get your location."
    return await send_message(telegram_id, text)


async def notify_step_failed(telegram_id: int | None, message: str) -> bool:
    return await send_message(telegram_id, f"⚠️ <b>{message}</b>\n\nPlease try again.")
