from fastapi import status

from schoolhub.auth import services
from schoolhub.auth.schemas import ChangePasswordRequest, LoginRequest, ProfileUpdate, RefreshRequest, RegisterRequest
from schoolhub.core.enums import Role
from schoolhub.core.schemas import parse_payload
from schoolhub.pipeline.context import Endpoint, HandlerContext, HandlerResult
from schoolhub.pipeline.gates import PUBLIC_STACK, ROLE_STACK

ANY_ADMIN = frozenset({Role.SUPERADMIN, Role.SCHOOL_ADMIN})


async def register(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(RegisterRequest, ctx.request.body)
    user = await services.register_user(ctx.db, payload)
    return HandlerResult(
        data=user.to_wire(), message="User registered successfully", code=status.HTTP_201_CREATED
    )


async def login(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(LoginRequest, ctx.request.body)
    result = await services.login_user(ctx.db, ctx.tokens, payload)
    return HandlerResult(data=result.to_wire(), message="Login successful")


async def logout(ctx: HandlerContext) -> HandlerResult:
    await services.logout_user(ctx.db, ctx.tokens, ctx.caller, ctx.token.token)
    return HandlerResult(message="Logout successful")


async def refresh(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(RefreshRequest, ctx.request.body)
    result = await services.refresh_access_token(ctx.db, ctx.tokens, payload.refresh_token)
    return HandlerResult(data=result.to_wire())


async def profile(ctx: HandlerContext) -> HandlerResult:
    user = await services.get_profile(ctx.db, ctx.caller)
    return HandlerResult(data=user.to_wire())


async def update_profile(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(ProfileUpdate, ctx.request.body)
    user = await services.update_profile(ctx.db, ctx.caller, payload)
    return HandlerResult(data=user.to_wire(), message="Profile updated successfully")


async def change_password(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(ChangePasswordRequest, ctx.request.body)
    await services.change_password(ctx.db, ctx.caller, payload)
    return HandlerResult(message="Password changed successfully")


ENDPOINTS = {
    "register": Endpoint(register, "POST", PUBLIC_STACK),
    "login": Endpoint(login, "POST", PUBLIC_STACK),
    "logout": Endpoint(logout, "POST", ROLE_STACK, ANY_ADMIN),
    "refresh": Endpoint(refresh, "POST", PUBLIC_STACK),
    "profile": Endpoint(profile, "GET", ROLE_STACK, ANY_ADMIN),
    "updateProfile": Endpoint(update_profile, "PUT", ROLE_STACK, ANY_ADMIN),
    "changePassword": Endpoint(change_password, "POST", ROLE_STACK, ANY_ADMIN),
}
