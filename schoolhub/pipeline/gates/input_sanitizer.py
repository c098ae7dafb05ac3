import logging
import re
from typing import Any

from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed

logger = logging.getLogger(__name__)

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        value = _SCRIPT_TAG.sub("", value)
        value = _JS_PROTOCOL.sub("", value)
        value = _EVENT_HANDLER.sub("", value)
        return value.strip()
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    return value


def build(deps: GateDependencies) -> Gate:
    async def input_sanitizer_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        try:
            request.body = sanitize_value(request.body)
            request.query = sanitize_value(request.query)
        except Exception as e:
            logger.warning(f"Input sanitization skipped for {request.path}: {e}")
        proceed()

    return input_sanitizer_gate
