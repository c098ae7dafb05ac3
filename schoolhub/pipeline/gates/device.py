from schoolhub.pipeline.context import ApiRequest, ApiResponse, DeviceInfo, Gate, GateDependencies, Proceed


def client_ip(request: ApiRequest, trust_proxy_headers: bool = False) -> str:
    """Caller address. X-Forwarded-For is honoured only when trust_proxy_headers is set."""
    if trust_proxy_headers:
        forwarded = request.header("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client_ip or "unknown"


def device_ip(request: ApiRequest, trust_proxy_headers: bool = False) -> str:
    """IP recorded by the device gate, or resolved directly when that gate did not run."""
    device = request.context.get("device")
    if isinstance(device, DeviceInfo):
        return device.ip
    return client_ip(request, trust_proxy_headers)


def build(deps: GateDependencies) -> Gate:
    trust_proxy_headers = deps.settings.trust_proxy_headers

    async def device_gate(request: ApiRequest, response: ApiResponse, proceed: Proceed) -> None:
        ip = client_ip(request, trust_proxy_headers)
        proceed(DeviceInfo(ip=ip, user_agent=request.header("user-agent") or "unknown"))

    return device_gate
