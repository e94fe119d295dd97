from typing import Dict, Any, List
from fastapi import Request, Response, HTTPException
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from redis.exceptions import RedisError
import logging
import time

import storefront.config as config

logger = logging.getLogger(__name__)

def _client_key(req: Request) -> str:
    # Pas de session côté boutique: IP (derrière proxy, X-Forwarded-For) + chemin
    forwarded = (req.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (req.client.host if req.client else "local")
    return f"ip:{ip}:{req.url.path}"

def _now() -> float:
    return time.time()

async def _identifier(req: Request) -> str:
    return _client_key(req)

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de limitation: Redis (fastapi-limiter) si initialisé,
    sinon fenêtre glissante en mémoire quand LOCAL_RATE_LIMIT_FALLBACK est actif.
    """
    limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)
    hits_by_key: Dict[str, List[float]] = {}

    def _local_limit(request: Request) -> None:
        now = _now()
        # Clés dont la fenêtre est expirée: supprimées
        for stale in [k for k, hits in hits_by_key.items() if not hits or now - hits[-1] >= seconds]:
            del hits_by_key[stale]
        key = _client_key(request)
        hits = [t for t in hits_by_key.get(key, []) if now - t < seconds]
        if len(hits) >= times:
            raise HTTPException(status_code=429, detail="Too Many Requests")
        hits.append(now)
        hits_by_key[key] = hits

    async def _dep(request: Request, response: Response):
        # Respecter le flag global posé par le lifespan
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return
        if FastAPILimiter.redis is None:
            if config._flag("LOCAL_RATE_LIMIT_FALLBACK"):
                _local_limit(request)
            return
        try:
            await limiter(request, response)
        except RedisError as e:
            # Redis tombé après l'init: mémoire si autorisé, sinon pas de 429 en prod
            logger.warning("rate_limit redis error on %s: %s", request.url.path, e)
            if config._flag("LOCAL_RATE_LIMIT_FALLBACK"):
                _local_limit(request)

    _dep.hits_by_key = hits_by_key
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
