from schoolhub.pipeline.context import ApiRequest, ApiResponse, Gate, GateDependencies, Proceed


def build(deps: GateDependencies) -> Gate:
    async def query_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        # Body wins on key collisions
        proceed({**request.query, **request.body})

    return query_gate
