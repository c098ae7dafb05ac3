"""Builds gates once at startup and checks every endpoint's pre_stack against them."""
import logging
from typing import Dict, Mapping

from schoolhub.pipeline.context import Endpoint, Gate, GateDependencies, GateFactory

logger = logging.getLogger(__name__)


class PipelineConfigurationError(RuntimeError):
    """A gate or endpoint table is wired incorrectly. Raised at startup, never per request."""


def compose_gates(factories: Mapping[str, GateFactory], deps: GateDependencies) -> Dict[str, Gate]:
    gates: Dict[str, Gate] = {}
    for name, factory in factories.items():
        gate = factory(deps)
        if not callable(gate):
            raise PipelineConfigurationError(f"Gate factory '{name}' did not return a callable")
        gates[name] = gate
    logger.info(f"Composed {len(gates)} gates: {', '.join(gates)}")
    return gates


def validate_endpoints(endpoints: Mapping[str, Mapping[str, Endpoint]], gates: Mapping[str, Gate]) -> None:
    for module_name, functions in endpoints.items():
        for function_name, endpoint in functions.items():
            label = f"{module_name}/{function_name}"
            if not callable(endpoint.handler):
                raise PipelineConfigurationError(f"Endpoint {label} has no callable handler")
            unknown = [name for name in endpoint.pre_stack if name not in gates]
            if unknown:
                raise PipelineConfigurationError(f"Endpoint {label} references unknown gate(s): {', '.join(unknown)}")
            if "rbac" in endpoint.pre_stack:
                if not endpoint.roles:
                    raise PipelineConfigurationError(f"Endpoint {label} uses rbac without any allowed role")
                if "token" not in endpoint.pre_stack or (
                    endpoint.pre_stack.index("token") > endpoint.pre_stack.index("rbac")
                ):
                    raise PipelineConfigurationError(f"Endpoint {label} must run the token gate before rbac")
