import logging
import time

from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed
from schoolhub.pipeline.gates.device import device_ip

logger = logging.getLogger("schoolhub.requests")


def build(deps: GateDependencies) -> Gate:
    trust_proxy_headers = deps.settings.trust_proxy_headers

    async def request_logger_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        started = time.perf_counter()
        ip = device_ip(request, trust_proxy_headers)
        logger.info(f"{request.method} {request.path} from {ip}")

        def log_completion(sent: ApiResponse) -> None:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(f"{request.method} {request.path} {sent.status_code} {duration_ms:.1f}ms")

        response.on_send.append(log_completion)
        proceed()

    return request_logger_gate
