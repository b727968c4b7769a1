import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 4.0


class BackendUnavailable(Exception):
    pass


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings handed to the controller at startup."""

    api_base: str
    timeout: float = 30.0
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT


async def resolve_backend(
    candidates: Iterable[Optional[str]],
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientConfig:
    """Return a config for the first candidate whose ``/health`` answers 2xx."""
    tried = []
    async with httpx.AsyncClient(timeout=probe_timeout, transport=transport) as client:
        for base in candidates:
            if not base:
                continue
            base = base.rstrip("/")
            tried.append(base)
            try:
                response = await client.get(f"{base}/health")
            except httpx.HTTPError as e:
                logger.info(f"Backend {base} unreachable: {e}")
                continue
            if response.is_success:
                logger.info(f"Using backend {base}")
                return ClientConfig(api_base=base, probe_timeout=probe_timeout)
            logger.info(f"Backend {base} unhealthy: HTTP {response.status_code}")
    raise BackendUnavailable(f"No backend reachable (tried: {', '.join(tried) or 'none'})")
