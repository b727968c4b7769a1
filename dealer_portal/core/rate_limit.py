from fastapi import HTTPException
from dealer_portal.core.redis import get_redis
from dealer_portal.core.config import settings
from dealer_portal.core.metrics import rate_limit_exceeded

async def check_rate_limit(user_key: str):
    redis = get_redis()
    if redis is None:
        return
    key = f"rl:{user_key}"
    current = await redis.get(key)
    if current is None:
        await redis.set(key, "1", ex=settings.RATE_LIMIT_WINDOW)
        return
    count = int(current)
    if count >= settings.RATE_LIMIT:
        rate_limit_exceeded.labels(user_id=user_key).inc()
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    await redis.incr(key)
