"""Telegram ops channel.

Posts a short summary of each scheduled monitoring pass to the configured
chat. Subscriber notifications never go through here.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx

from scorewatch.config import get_settings
from scorewatch.core.constants import TELEGRAM_MAX_MESSAGE_LENGTH
from scorewatch.core.logging import get_logger

if TYPE_CHECKING:
    from scorewatch.monitoring.models import PassResult

logger = get_logger(__name__)

TELEGRAM_TIMEOUT = 10.0

SECTION_SEPARATOR = "━━━━━━━━━━"

# Errors listed in a pass summary; the rest are only counted
MAX_SUMMARY_ERRORS = 10


def _escape_html(text: str) -> str:
    """Escape HTML special characters for Telegram."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _split_message(message: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> list[str]:
    """Split a message into chunks under ``max_length``, preferring line breaks."""
    chunks: list[str] = []
    remaining = message
    while len(remaining) > max_length:
        split_pos = remaining.rfind("\n", 0, max_length)
        if split_pos <= max_length // 2:
            split_pos = max_length
        chunks.append(remaining[:split_pos].rstrip())
        remaining = remaining[split_pos:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


async def send_telegram(message: str, parse_mode: str = "HTML") -> bool:
    """Send a message to the configured Telegram chat.

    Returns:
        True if message was sent successfully, False otherwise
    """
    settings = get_settings()

    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        logger.warning("Telegram not configured, skipping notification")
        return False

    url = (
        f"https://api.telegram.org/bot{settings.telegram_bot_token.get_secret_value()}/sendMessage"
    )
    payload = {
        "chat_id": settings.telegram_chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        async with httpx.AsyncClient(timeout=TELEGRAM_TIMEOUT) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()

            result = response.json()
            if result.get("ok"):
                logger.debug("Telegram message sent successfully")
                return True
            logger.warning("Telegram API returned error", error=result.get("description"))
            return False

    except httpx.HTTPError as e:
        logger.error("Failed to send Telegram message", error=str(e))
        return False
    except (json.JSONDecodeError, KeyError) as e:
        logger.error("Failed to parse Telegram API response", error=str(e))
        return False


async def send_long_telegram(message: str, parse_mode: str = "HTML") -> bool:
    """Send a potentially long message, splitting into multiple if needed."""
    chunks = _split_message(message)

    all_sent = True
    for i, chunk in enumerate(chunks):
        if not await send_telegram(chunk, parse_mode):
            logger.warning("Failed to send message chunk", chunk_index=i, total_chunks=len(chunks))
            all_sent = False
    return all_sent


def format_pass_summary(result: PassResult, trigger: str = "scheduled") -> str:
    """Format a monitoring pass result for Telegram (HTML)."""
    status = "🟡" if result.errors or result.budget_exhausted else "🟢"
    msg = f"""{status} <b>MONITORING PASS</b> ({_escape_html(trigger)})
Processed: {result.processed}/{result.batch_size}
Snapshots: {result.snapshots_created}
Changes: {result.changes_detected}
Reports: {result.reports_generated}
Notifications: {result.notifications_sent}
Time: {result.elapsed_seconds:.1f}s"""

    if result.budget_exhausted:
        msg += "\n⏱ Time budget exhausted, batch partially processed"

    if result.errors:
        msg += f"""

{SECTION_SEPARATOR}
⚠️ <b>Errors ({len(result.errors)})</b>"""
        for error in result.errors[:MAX_SUMMARY_ERRORS]:
            msg += f"\n• {_escape_html(error)}"
        if len(result.errors) > MAX_SUMMARY_ERRORS:
            msg += f"\n<i>… and {len(result.errors) - MAX_SUMMARY_ERRORS} more</i>"

    return msg
