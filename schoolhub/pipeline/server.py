"""
SchoolServer owns the process-wide resources: settings, cache, database engine and the
composed gate pipeline. start() and stop() are idempotent; handle() requires start().
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from schoolhub.auth import models as auth_models  # noqa: F401 registers users table
from schoolhub.auth.tokens import TokenService
from schoolhub.core import models as core_models  # noqa: F401 registers entity tables
from schoolhub.core.cache import CacheManager, create_cache
from schoolhub.core.config import Settings
from schoolhub.db.session import Base, create_session_factory
from schoolhub.pipeline.composer import compose_gates, validate_endpoints
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Endpoint, GateDependencies, GateFactory
from schoolhub.pipeline.dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)


class SchoolServer:
    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheManager] = None,
        engine: Optional[AsyncEngine] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        endpoints: Optional[Mapping[str, Mapping[str, Endpoint]]] = None,
        gate_factories: Optional[Mapping[str, GateFactory]] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.engine = engine
        self.session_factory = session_factory
        self._endpoints = endpoints
        self._gate_factories = gate_factories
        self.tokens: Optional[TokenService] = None
        self.dispatcher: Optional[RequestDispatcher] = None
        self.started = False

    async def start(self) -> None:
        if self.started:
            return
        if self._endpoints is None:
            from schoolhub.api.v1.registry import ENDPOINTS

            self._endpoints = ENDPOINTS
        if self._gate_factories is None:
            from schoolhub.pipeline.gates import GATE_FACTORIES

            self._gate_factories = GATE_FACTORIES

        if self.cache is None:
            self.cache = create_cache(self.settings)
        if self.session_factory is None:
            self.engine, self.session_factory = create_session_factory(self.settings.database_url)
        if self.settings.auto_create_schema and self.engine is not None:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        self.tokens = TokenService.from_settings(self.settings, self.cache)
        deps = GateDependencies(settings=self.settings, cache=self.cache, tokens=self.tokens)
        gates = compose_gates(self._gate_factories, deps)
        validate_endpoints(self._endpoints, gates)
        self.dispatcher = RequestDispatcher(
            self._endpoints, gates, self.session_factory, self.settings, self.cache, self.tokens
        )
        self.started = True
        logger.info(f"{self.settings.service_name} started ({self.settings.environment})")

    async def stop(self) -> None:
        if not self.started:
            return
        self.started = False
        self.dispatcher = None
        if self.cache is not None:
            await self.cache.close()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info(f"{self.settings.service_name} stopped")

    async def handle(self, request: ApiRequest) -> ApiResponse:
        if not self.started or self.dispatcher is None:
            raise RuntimeError("SchoolServer.handle() called before start()")
        return await self.dispatcher.dispatch(request)

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": self.settings.service_name,
            "environment": self.settings.environment,
        }
