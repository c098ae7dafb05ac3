"""
Routes an ApiRequest to its endpoint: resolve, run the pre_stack gates in order, then the handler.

- Unknown module/function -> 404; known function with the wrong method -> 405.
- A gate either calls proceed(extra) (extra stored under the gate's name) or sends a response.
- Each handler gets its own database session; ServiceError maps to the envelope, anything
  else is logged and reported as a generic 500.
"""
import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from schoolhub.auth.tokens import TokenService
from schoolhub.core.cache import CacheManager
from schoolhub.core.config import Settings
from schoolhub.core.exceptions import InternalError, MethodNotAllowedError, NotFoundError, ServiceError
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Endpoint, Gate, HandlerContext

logger = logging.getLogger(__name__)


class RequestDispatcher:
    def __init__(
        self,
        endpoints: Mapping[str, Mapping[str, Endpoint]],
        gates: Mapping[str, Gate],
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        cache: CacheManager,
        tokens: TokenService,
    ) -> None:
        self.endpoints = endpoints
        self.gates = gates
        self.session_factory = session_factory
        self.settings = settings
        self.cache = cache
        self.tokens = tokens

    def resolve(self, request: ApiRequest) -> Endpoint:
        functions = self.endpoints.get(request.module_name)
        endpoint = functions.get(request.function_name) if functions else None
        if endpoint is None or not endpoint.exposed:
            raise NotFoundError(f"Endpoint {request.module_name}/{request.function_name} not found")
        if endpoint.method != request.method:
            raise MethodNotAllowedError(f"Method {request.method} not allowed. Use {endpoint.method}")
        return endpoint

    async def _run_gate(self, name: str, request: ApiRequest, response: ApiResponse) -> bool:
        proceeded = False

        def proceed(extra: Any = None) -> None:
            nonlocal proceeded
            proceeded = True
            if extra is not None:
                request.context[name] = extra

        await self.gates[name](request, response, proceed)
        if response.sent:
            return False
        if not proceeded:
            logger.error(f"Gate '{name}' neither proceeded nor responded for {request.path}")
            response.fail(InternalError())
            return False
        return True

    async def dispatch(self, request: ApiRequest) -> ApiResponse:
        response = ApiResponse()
        try:
            endpoint = self.resolve(request)
            request.endpoint = endpoint
            for name in endpoint.pre_stack:
                if not await self._run_gate(name, request, response):
                    return response

            async with self.session_factory() as db:
                ctx = HandlerContext(
                    request=request, db=db, settings=self.settings, cache=self.cache, tokens=self.tokens
                )
                result = await endpoint.handler(ctx)
            response.dispatch(ok=True, code=result.code, data=result.data, message=result.message)
        except ServiceError as e:
            if e.status_code >= 500:
                logger.error(f"{request.method} {request.path} failed: {e.message}")
            response.fail(e)
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            response.fail(InternalError())
        return response
