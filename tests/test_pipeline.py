from contextlib import asynccontextmanager

import pytest
from httpx import AsyncClient

from schoolhub.core.enums import Role
from schoolhub.core.exceptions import AuthenticationError, ConflictError
from schoolhub.pipeline.composer import PipelineConfigurationError, compose_gates, validate_endpoints
from schoolhub.pipeline.context import ApiRequest, ApiResponse, Endpoint, GateDependencies, HandlerResult
from schoolhub.pipeline.dispatcher import RequestDispatcher
from schoolhub.pipeline.gates.input_sanitizer import sanitize_value


@asynccontextmanager
async def _no_session():
    yield None


def _make_dispatcher(endpoints, gates, test_settings):
    return RequestDispatcher(endpoints, gates, _no_session, test_settings, cache=None, tokens=None)


def _recording_gate(name, calls):
    async def gate(request, response, proceed):
        calls.append(name)
        proceed({"seen": list(calls)})

    return gate


async def test_gates_run_in_declared_order_and_share_context(test_settings) -> None:
    calls = []
    gates = {name: _recording_gate(name, calls) for name in ("first", "second", "third")}

    async def handler(ctx):
        return HandlerResult(data={"calls": list(calls), "second": ctx.request.context["second"]})

    endpoints = {"things": {"do": Endpoint(handler, "POST", ("third", "first", "second"))}}
    response = await _make_dispatcher(endpoints, gates, test_settings).dispatch(ApiRequest("things", "do", "POST"))

    assert response.status_code == 200
    assert response.body["ok"] is True
    assert response.body["data"]["calls"] == ["third", "first", "second"]
    # Context stored under the gate's own name, visible to the handler
    assert response.body["data"]["second"] == {"seen": ["third", "first", "second"]}


async def test_rejecting_gate_stops_the_chain(test_settings) -> None:
    calls = []
    handler_called = False

    async def reject(request, response, proceed):
        calls.append("reject")
        response.fail(AuthenticationError("nope"))

    async def handler(ctx):
        nonlocal handler_called
        handler_called = True
        return HandlerResult()

    gates = {"reject": reject, "after": _recording_gate("after", calls)}
    endpoints = {"things": {"do": Endpoint(handler, "POST", ("reject", "after"))}}
    response = await _make_dispatcher(endpoints, gates, test_settings).dispatch(ApiRequest("things", "do", "POST"))

    assert response.status_code == 401
    assert response.body == {"ok": False, "code": 401, "errors": "nope"}
    assert calls == ["reject"]
    assert handler_called is False


async def test_gate_that_neither_proceeds_nor_responds_is_a_server_error(test_settings) -> None:
    async def silent(request, response, proceed):
        return None

    async def handler(ctx):
        return HandlerResult()

    endpoints = {"things": {"do": Endpoint(handler, "POST", ("silent",))}}
    response = await _make_dispatcher(endpoints, {"silent": silent}, test_settings).dispatch(
        ApiRequest("things", "do", "POST")
    )
    assert response.status_code == 500


async def test_unknown_hidden_and_wrong_method(test_settings) -> None:
    async def handler(ctx):
        return HandlerResult()

    endpoints = {
        "things": {
            "do": Endpoint(handler, "POST", ()),
            "hidden": Endpoint(handler, "POST", (), exposed=False),
        }
    }
    dispatcher = _make_dispatcher(endpoints, {}, test_settings)

    assert (await dispatcher.dispatch(ApiRequest("nothing", "do", "POST"))).status_code == 404
    assert (await dispatcher.dispatch(ApiRequest("things", "missing", "POST"))).status_code == 404
    assert (await dispatcher.dispatch(ApiRequest("things", "hidden", "POST"))).status_code == 404
    wrong_method = await dispatcher.dispatch(ApiRequest("things", "do", "get"))
    assert wrong_method.status_code == 405
    assert wrong_method.body["errors"] == "Method GET not allowed. Use POST"


async def test_handler_errors_map_to_envelope_without_leaking(test_settings) -> None:
    async def boom(ctx):
        raise RuntimeError("connection string postgres://secret")

    async def conflict(ctx):
        raise ConflictError("Already there")

    endpoints = {"things": {"boom": Endpoint(boom, "POST", ()), "conflict": Endpoint(conflict, "POST", ())}}
    dispatcher = _make_dispatcher(endpoints, {}, test_settings)

    crashed = await dispatcher.dispatch(ApiRequest("things", "boom", "POST"))
    assert crashed.status_code == 500
    assert crashed.body == {"ok": False, "code": 500, "errors": "Internal server error"}

    conflicted = await dispatcher.dispatch(ApiRequest("things", "conflict", "POST"))
    assert conflicted.body == {"ok": False, "code": 409, "errors": "Already there"}


def test_response_is_sent_once() -> None:
    response = ApiResponse()
    response.dispatch(ok=True, code=201, data={"id": 1})
    response.dispatch(ok=False, code=500, errors="late")

    assert response.status_code == 201
    assert response.body == {"ok": True, "code": 201, "data": {"id": 1}}


def test_compose_rejects_non_callable_gate(test_settings) -> None:
    deps = GateDependencies(settings=test_settings, cache=None, tokens=None)
    with pytest.raises(PipelineConfigurationError):
        compose_gates({"broken": lambda deps: "not a gate"}, deps)


def test_validate_endpoints_rejects_bad_tables() -> None:
    async def gate(request, response, proceed):
        proceed()

    async def handler(ctx):
        return HandlerResult()

    gates = {"token": gate, "rbac": gate}

    with pytest.raises(PipelineConfigurationError, match="unknown gate"):
        validate_endpoints({"m": {"f": Endpoint(handler, "POST", ("token", "missing"))}}, gates)
    with pytest.raises(PipelineConfigurationError, match="without any allowed role"):
        validate_endpoints({"m": {"f": Endpoint(handler, "POST", ("token", "rbac"))}}, gates)
    with pytest.raises(PipelineConfigurationError, match="token gate before rbac"):
        validate_endpoints(
            {"m": {"f": Endpoint(handler, "POST", ("rbac", "token"), frozenset({Role.SUPERADMIN}))}}, gates
        )

    validate_endpoints({"m": {"f": Endpoint(handler, "POST", ("token", "rbac"), frozenset({Role.SUPERADMIN}))}}, gates)


async def test_registered_endpoint_table_is_valid(server) -> None:
    # start() already validated it; every endpoint is reachable
    assert set(server.dispatcher.endpoints) == {"auth", "schools", "classrooms", "students"}
    assert server.dispatcher.endpoints["students"]["transfer"].method == "POST"


def test_sanitize_value_strips_script_content() -> None:
    dirty = {
        "name": "  <script>alert(1)</script>Bob  ",
        "link": "javascript:alert(1)",
        "tags": ["<img src=x onerror=alert(1)>", 5],
    }
    assert sanitize_value(dirty) == {"name": "Bob", "link": "alert(1)", "tags": ["<img src=x alert(1)>", 5]}


async def test_health_bypasses_pipeline(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["environment"] == "test"
    assert "timestamp" in data and "service" in data
    assert "X-RateLimit-Limit" not in response.headers


async def test_http_unknown_endpoint_and_wrong_method(client: AsyncClient) -> None:
    missing = await client.post("/api/schools/explode", json={})
    assert missing.status_code == 404
    assert missing.json()["ok"] is False

    wrong = await client.get("/api/schools/create")
    assert wrong.status_code == 405


async def test_http_rejects_non_object_body(client: AsyncClient) -> None:
    response = await client.post("/api/auth/login", content=b"[1, 2]", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["errors"] == "Request body must be a JSON object"
