"""
Outgoing Webhook Delivery
=========================

Delivers poll events to the URLs a user registered for them.

Each delivery is a JSON POST of ``{"event", "payload", "timestamp"}`` signed
with the webhook's secret:

    X-Webhook-Signature: hex(HMAC-SHA256(secret, body))
    X-Webhook-Event:     <event>

Delivery is fire-and-forget. Failures are logged per webhook and never
propagate to the request that triggered them.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from supabase import Client

from jury import config

logger = logging.getLogger(__name__)


def sign_payload(body: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def build_webhook_body(event: str, payload: Dict[str, Any], timestamp: Optional[str] = None) -> str:
    return json.dumps({
        "event": event,
        "payload": payload,
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
    })


def get_subscribed_webhooks(db: Client, user_id: str, event: str) -> List[Dict[str, Any]]:
    result = (
        db.table("webhooks")
        .select("id, url, secret, events")
        .eq("user_id", user_id)
        .eq("is_active", True)
        .execute()
    )
    return [hook for hook in (result.data or []) if event in (hook.get("events") or [])]


async def deliver_webhook(client: httpx.AsyncClient, hook: Dict[str, Any], event: str, body: str) -> bool:
    """
    POST one signed delivery.

    Returns:
        bool: True on a 2xx response
    """
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Signature": sign_payload(body, hook["secret"]),
        "X-Webhook-Event": event,
    }
    try:
        response = await client.post(hook["url"], content=body, headers=headers)
    except httpx.TimeoutException:
        logger.warning(f"⏱️ Webhook {hook['id']} timed out ({event})")
        return False
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Webhook {hook['id']} delivery failed ({event}): {e}")
        return False

    if not response.is_success:
        logger.warning(f"⚠️ Webhook {hook['id']} returned {response.status_code} for {event}")
        return False
    return True


async def dispatch_webhook_event(db: Client, user_id: str, event: str, payload: Dict[str, Any]) -> int:
    """
    Deliver ``event`` to every active webhook of ``user_id`` subscribed to it.

    ``last_triggered_at`` is updated after each attempt whatever the outcome.

    Returns:
        int: Number of successful deliveries
    """
    try:
        hooks = get_subscribed_webhooks(db, user_id, event)
    except Exception as e:
        logger.error(f"❌ Could not load webhooks for {user_id}: {e}")
        return 0

    if not hooks:
        return 0

    body = build_webhook_body(event, payload)

    async with httpx.AsyncClient(timeout=config.WEBHOOK_TIMEOUT_SECONDS) as client:
        results = await asyncio.gather(
            *[deliver_webhook(client, hook, event, body) for hook in hooks],
            return_exceptions=True,
        )

    delivered = 0
    triggered_at = datetime.now(timezone.utc).isoformat()
    for hook, result in zip(hooks, results):
        if isinstance(result, Exception):
            logger.error(f"❌ Webhook {hook['id']} crashed: {result}")
        elif result:
            delivered += 1
        try:
            db.table("webhooks").update({"last_triggered_at": triggered_at}).eq("id", hook["id"]).execute()
        except Exception as e:
            logger.warning(f"⚠️ Failed to update last_triggered_at for webhook {hook['id']}: {e}")

    logger.info(f"📤 {event}: delivered {delivered}/{len(hooks)} webhooks for {user_id}")
    return delivered
