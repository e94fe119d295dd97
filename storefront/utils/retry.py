# storefront/utils/retry.py
import httpx
from tenacity import retry, retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_exponential

import storefront.config as config
from storefront.errors import GatewayUnavailable

def _is_retryable_gateway_error(exc: BaseException) -> bool:
    return isinstance(exc, GatewayUnavailable) and exc.retryable

def gateway_retry():
    """Rejoue les appels fournisseurs en erreur réseau/5xx/429 (jamais ConfigError ni 4xx)."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(max(1, config.GATEWAY_RETRY_ATTEMPTS)),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_is_retryable_gateway_error),
    )

def automation_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(httpx.HTTPError),
    )
