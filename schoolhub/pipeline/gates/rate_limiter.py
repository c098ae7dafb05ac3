"""Fixed-window request counter per client IP, kept in the shared cache."""
import logging

from schoolhub.core.exceptions import RateLimitedError
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed
from schoolhub.pipeline.gates.device import device_ip

logger = logging.getLogger(__name__)


def build(deps: GateDependencies) -> Gate:
    window = deps.settings.rate_limit_window_seconds
    max_requests = deps.settings.rate_limit_max_requests
    trust_proxy_headers = deps.settings.trust_proxy_headers

    async def rate_limiter_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        key = f"rate_limit:{device_ip(request, trust_proxy_headers)}"
        try:
            current = int(await deps.cache.get(key) or 0)
            if current >= max_requests:
                response.headers["X-RateLimit-Limit"] = str(max_requests)
                response.headers["X-RateLimit-Remaining"] = "0"
                response.fail(RateLimitedError(f"Too many requests. Maximum {max_requests} requests allowed"))
                return

            count = await deps.cache.incr(key)
            if count == 1:
                await deps.cache.expire(key, window)
        except Exception as e:
            # Cache outage must not take the API down with it
            logger.error(f"Rate limiter error for {key}: {e}")
            proceed()
            return

        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, max_requests - count))
        proceed()

    return rate_limiter_gate
