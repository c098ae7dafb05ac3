import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolhub.core.config import settings
from schoolhub.core.logging import configure_logging
from schoolhub.pipeline.context import ApiRequest
from schoolhub.pipeline.server import SchoolServer

logger = logging.getLogger(__name__)

API_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


async def _read_body(request: Request) -> Optional[Dict[str, Any]]:
    """JSON object body, {} when empty. None means the body is not a JSON object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create_app(server: Optional[SchoolServer] = None) -> FastAPI:
    server = server or SchoolServer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(server.settings.log_level)
        await server.start()
        try:
            yield
        finally:
            await server.stop()

    app = FastAPI(title="School Management API", lifespan=lifespan)
    app.state.server = server

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return server.health()

    @app.api_route("/api/{module_name}/{function_name}", methods=API_METHODS)
    async def dispatch(module_name: str, function_name: str, request: Request):
        body = await _read_body(request)
        if body is None:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"ok": False, "code": status.HTTP_400_BAD_REQUEST, "errors": "Request body must be a JSON object"},
            )

        api_request = ApiRequest(
            module_name=module_name,
            function_name=function_name,
            method=request.method,
            headers=dict(request.headers),
            body=body,
            query=dict(request.query_params),
            client_ip=request.client.host if request.client else None,
            path=request.url.path,
        )
        api_response = await server.handle(api_request)
        return JSONResponse(
            status_code=api_response.status_code,
            content=api_response.body,
            headers=api_response.headers,
        )

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
