from schoolhub.core.exceptions import AuthenticationError, AuthorizationError
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed


def build(deps: GateDependencies) -> Gate:
    async def rbac_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        token = request.context.get("token")
        if token is None:
            response.fail(AuthenticationError("Authentication required"))
            return
        allowed = request.endpoint.roles if request.endpoint else frozenset()
        if token.user.role not in allowed:
            required = ", ".join(sorted(role.value for role in allowed))
            response.fail(AuthorizationError(f"Insufficient permissions. Required role(s): {required}"))
            return
        proceed()

    return rbac_gate
