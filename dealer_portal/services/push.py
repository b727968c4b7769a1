import httpx
import asyncio
import logging
from typing import Optional
from dealer_portal.core.config import settings
from dealer_portal.core.metrics import push_deliveries

logger = logging.getLogger(__name__)


def dealer_topic(dealer_code: str) -> str:
    return f"/topics/dealer-{dealer_code}"


async def send_push(
    recipient: str,
    title: str,
    body: str,
    data: Optional[dict] = None,
    retries: int | None = None,
) -> bool:
    """Best-effort push to a dealer's topic. Never raises."""
    if not settings.PUSH_URL:
        logger.debug(f"Push disabled; dropping '{title}' for {recipient}")
        return False

    if retries is None:
        retries = settings.PUSH_RETRIES

    payload = {
        "to": dealer_topic(recipient),
        "notification": {"title": title, "body": body},
        "data": {k: str(v) for k, v in (data or {}).items()},
    }
    headers = {"Authorization": f"key={settings.PUSH_SERVER_KEY}"}
    backoff = 1.0
    
    for attempt in range(1, retries + 1):
        try:
            async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT) as client:
                response = await client.post(settings.PUSH_URL, json=payload, headers=headers)
                
                if 200 <= response.status_code < 300:
                    push_deliveries.labels(status="success", retry_count=str(attempt - 1)).inc()
                    logger.info(f"Push delivered to {recipient}: {title}")
                    return True
                else:
                    logger.warning(
                        f"Push delivery failed (attempt {attempt}/{retries}): "
                        f"Status {response.status_code} for {recipient}"
                    )
        except httpx.TimeoutException:
            logger.warning(f"Push timeout (attempt {attempt}/{retries}) for {recipient}")
        except Exception as e:
            logger.warning(f"Push delivery error (attempt {attempt}/{retries}): {e} for {recipient}")
        
        if attempt < retries:
            await asyncio.sleep(backoff)
            backoff *= 2.0
    
    push_deliveries.labels(status="failed", retry_count=str(retries)).inc()
    logger.error(f"Push delivery failed after {retries} attempts for {recipient}")
    return False
