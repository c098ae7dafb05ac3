"""
Gate registry. Endpoints name gates in their pre_stack; every name must be a key here.
Each factory receives GateDependencies once at startup and returns the gate callable.
"""
from typing import Dict

from schoolhub.pipeline.context import GateFactory
from schoolhub.pipeline.gates import device, input_sanitizer, query, rate_limiter, rbac, request_logger, token

GATE_FACTORIES: Dict[str, GateFactory] = {
    "device": device.build,
    "request_logger": request_logger.build,
    "rate_limiter": rate_limiter.build,
    "input_sanitizer": input_sanitizer.build,
    "token": token.build,
    "rbac": rbac.build,
    "query": query.build,
}

PUBLIC_STACK = ("device", "request_logger", "rate_limiter", "input_sanitizer")
AUTHENTICATED_STACK = PUBLIC_STACK + ("token",)
ROLE_STACK = AUTHENTICATED_STACK + ("rbac",)
LIST_STACK = ROLE_STACK + ("query",)
