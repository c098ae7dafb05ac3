import logging
from typing import Optional

from schoolhub.core.exceptions import AuthenticationError, InternalError, ServiceError
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed, TokenContext

logger = logging.getLogger(__name__)

MISSING_TOKEN_MESSAGE = "No token provided. Use Authorization: Bearer <token> or token header"


def extract_token(request: ApiRequest) -> Optional[str]:
    authorization = request.header("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return request.header("token") or None


def build(deps: GateDependencies) -> Gate:
    async def token_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        token = extract_token(request)
        if not token:
            response.fail(AuthenticationError(MISSING_TOKEN_MESSAGE))
            return
        try:
            claims = await deps.tokens.verify(token)
            user = deps.tokens.to_current_user(claims)
        except ServiceError as e:
            response.fail(e)
            return
        except Exception as e:
            logger.error(f"Token verification failed unexpectedly: {e}")
            response.fail(InternalError("Authentication error"))
            return
        proceed(TokenContext(user=user, token=token, claims=claims))

    return token_gate
