from fastapi import status

from schoolhub.core.enums import Role
from schoolhub.core.schemas import IdRequest, parse_payload
from schoolhub.core.tenancy import TenantScope
from schoolhub.pipeline.context import Endpoint, HandlerContext, HandlerResult
from schoolhub.pipeline.gates import LIST_STACK, ROLE_STACK

from . import service
from .schemas import SchoolCreate, SchoolListParams, SchoolUpdate

SUPERADMIN_ONLY = frozenset({Role.SUPERADMIN})
ANY_ADMIN = frozenset({Role.SUPERADMIN, Role.SCHOOL_ADMIN})


async def create(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(SchoolCreate, ctx.request.body)
    school = await service.create_school(ctx.db, ctx.cache, payload)
    return HandlerResult(data=school.to_wire(), code=status.HTTP_201_CREATED)


async def get(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    scope = TenantScope.for_caller(ctx.caller)
    return HandlerResult(data=await service.get_school(ctx.db, ctx.cache, scope, payload.id))


async def list_(ctx: HandlerContext) -> HandlerResult:
    params = parse_payload(SchoolListParams, ctx.params)
    scope = TenantScope.for_caller(ctx.caller)
    data = await service.list_schools(ctx.db, scope, params, ctx.settings.max_page_size)
    return HandlerResult(data=data)


async def update(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(SchoolUpdate, ctx.request.body)
    school = await service.update_school(ctx.db, ctx.cache, payload)
    return HandlerResult(data=school.to_wire())


async def delete(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    await service.delete_school(ctx.db, ctx.cache, payload.id)
    return HandlerResult(message="School deleted successfully")


async def stats(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    scope = TenantScope.for_caller(ctx.caller)
    result = await service.get_school_stats(ctx.db, scope, payload.id)
    return HandlerResult(data=result.to_wire())


ENDPOINTS = {
    "create": Endpoint(create, "POST", ROLE_STACK, SUPERADMIN_ONLY),
    "get": Endpoint(get, "POST", ROLE_STACK, ANY_ADMIN),
    "list": Endpoint(list_, "POST", LIST_STACK, ANY_ADMIN),
    "update": Endpoint(update, "PUT", ROLE_STACK, SUPERADMIN_ONLY),
    "delete": Endpoint(delete, "DELETE", ROLE_STACK, SUPERADMIN_ONLY),
    "stats": Endpoint(stats, "POST", ROLE_STACK, ANY_ADMIN),
}
