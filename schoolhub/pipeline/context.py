"""Request/response objects passed through gates and handlers, independent of the HTTP framework."""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.auth.schemas import CurrentUser
from schoolhub.auth.tokens import TokenService
from schoolhub.core.cache import CacheManager
from schoolhub.core.config import Settings
from schoolhub.core.enums import Role
from schoolhub.core.exceptions import AuthenticationError, ServiceError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


@dataclass
class ApiRequest:
    module_name: str
    function_name: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    client_ip: Optional[str] = None
    path: str = ""
    # Values passed forward by gates, keyed by gate name
    context: Dict[str, Any] = field(default_factory=dict)
    endpoint: Optional["Endpoint"] = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}
        if not self.path:
            self.path = f"/api/{self.module_name}/{self.function_name}"

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass
class ApiResponse:
    """Envelope {ok, code, data?, errors?, message?}. Only the first dispatch is sent."""

    status_code: int = status.HTTP_200_OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None
    on_send: List[Callable[["ApiResponse"], None]] = field(default_factory=list)

    @property
    def sent(self) -> bool:
        return self.body is not None

    def dispatch(
        self,
        ok: bool,
        code: int,
        data: Any = None,
        errors: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        if self.sent:
            logger.warning(f"Response already sent with code {self.status_code}; dropping code {code}")
            return
        body: Dict[str, Any] = {"ok": ok, "code": code}
        if data is not None:
            body["data"] = data
        if errors is not None:
            body["errors"] = errors
        if message is not None:
            body["message"] = message
        self.status_code = code
        self.body = body
        for callback in self.on_send:
            callback(self)

    def fail(self, error: ServiceError) -> None:
        message = error.message
        if error.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            message = GENERIC_ERROR_MESSAGE
        self.dispatch(ok=False, code=error.status_code, errors=message)


@dataclass(frozen=True)
class DeviceInfo:
    ip: str
    user_agent: str


@dataclass(frozen=True)
class TokenContext:
    """Passed forward by the token gate."""

    user: CurrentUser
    token: str
    claims: Dict[str, Any]


@dataclass
class HandlerResult:
    data: Any = None
    message: Optional[str] = None
    code: int = status.HTTP_200_OK


@dataclass
class HandlerContext:
    request: ApiRequest
    db: AsyncSession
    settings: Settings
    cache: CacheManager
    tokens: TokenService

    @property
    def token(self) -> Optional[TokenContext]:
        return self.request.context.get("token")

    @property
    def caller(self) -> CurrentUser:
        token = self.token
        if token is None:
            raise AuthenticationError()
        return token.user

    @property
    def params(self) -> Dict[str, Any]:
        """Merged query/body from the query gate; built the same way when that gate did not run."""
        merged = self.request.context.get("query")
        if merged is None:
            merged = {**self.request.query, **self.request.body}
        return merged


Handler = Callable[[HandlerContext], Awaitable[HandlerResult]]


@dataclass(frozen=True)
class Endpoint:
    handler: Handler
    method: str
    pre_stack: Tuple[str, ...]
    roles: FrozenSet[Role] = frozenset()
    exposed: bool = True


Proceed = Callable[..., None]
Gate = Callable[[ApiRequest, ApiResponse, Proceed], Awaitable[None]]


@dataclass
class GateDependencies:
    settings: Settings
    cache: CacheManager
    tokens: TokenService


GateFactory = Callable[[GateDependencies], Gate]
