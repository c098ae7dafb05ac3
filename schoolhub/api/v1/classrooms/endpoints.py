from fastapi import status

from schoolhub.core.enums import Role
from schoolhub.core.schemas import IdRequest, parse_payload
from schoolhub.core.tenancy import TenantScope
from schoolhub.pipeline.context import Endpoint, HandlerContext, HandlerResult
from schoolhub.pipeline.gates import LIST_STACK, ROLE_STACK

from . import service
from .schemas import ClassroomCreate, ClassroomListParams, ClassroomUpdate

ANY_ADMIN = frozenset({Role.SUPERADMIN, Role.SCHOOL_ADMIN})


async def create(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(ClassroomCreate, ctx.request.body)
    classroom = await service.create_classroom(ctx.db, TenantScope.for_caller(ctx.caller), payload)
    return HandlerResult(data=classroom.to_wire(), code=status.HTTP_201_CREATED)


async def get(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    classroom = await service.get_classroom(ctx.db, TenantScope.for_caller(ctx.caller), payload.id)
    return HandlerResult(data=classroom.to_wire())


async def list_(ctx: HandlerContext) -> HandlerResult:
    params = parse_payload(ClassroomListParams, ctx.params)
    scope = TenantScope.for_caller(ctx.caller)
    return HandlerResult(data=await service.list_classrooms(ctx.db, scope, params, ctx.settings.max_page_size))


async def update(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(ClassroomUpdate, ctx.request.body)
    classroom = await service.update_classroom(ctx.db, TenantScope.for_caller(ctx.caller), payload)
    return HandlerResult(data=classroom.to_wire())


async def delete(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    await service.delete_classroom(ctx.db, TenantScope.for_caller(ctx.caller), payload.id)
    return HandlerResult(message="Classroom deleted successfully")


async def stats(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    result = await service.get_classroom_stats(ctx.db, TenantScope.for_caller(ctx.caller), payload.id)
    return HandlerResult(data=result.to_wire())


ENDPOINTS = {
    "create": Endpoint(create, "POST", ROLE_STACK, ANY_ADMIN),
    "get": Endpoint(get, "POST", ROLE_STACK, ANY_ADMIN),
    "list": Endpoint(list_, "POST", LIST_STACK, ANY_ADMIN),
    "update": Endpoint(update, "PUT", ROLE_STACK, ANY_ADMIN),
    "delete": Endpoint(delete, "DELETE", ROLE_STACK, ANY_ADMIN),
    "stats": Endpoint(stats, "POST", ROLE_STACK, ANY_ADMIN),
}
