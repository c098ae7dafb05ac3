from fastapi import status

from schoolhub.core.enums import Role
from schoolhub.core.schemas import IdRequest, parse_payload
from schoolhub.core.tenancy import TenantScope
from schoolhub.pipeline.context import Endpoint, HandlerContext, HandlerResult
from schoolhub.pipeline.gates import LIST_STACK, ROLE_STACK

from . import service
from .schemas import StudentCreate, StudentListParams, StudentTransfer, StudentUpdate

ANY_ADMIN = frozenset({Role.SUPERADMIN, Role.SCHOOL_ADMIN})


async def create(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(StudentCreate, ctx.request.body)
    student = await service.create_student(ctx.db, TenantScope.for_caller(ctx.caller), payload)
    return HandlerResult(data=student.to_wire(), code=status.HTTP_201_CREATED)


async def get(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    student = await service.get_student(ctx.db, TenantScope.for_caller(ctx.caller), payload.id)
    return HandlerResult(data=student.to_wire())


async def list_(ctx: HandlerContext) -> HandlerResult:
    params = parse_payload(StudentListParams, ctx.params)
    scope = TenantScope.for_caller(ctx.caller)
    return HandlerResult(data=await service.list_students(ctx.db, scope, params, ctx.settings.max_page_size))


async def update(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(StudentUpdate, ctx.request.body)
    student = await service.update_student(ctx.db, TenantScope.for_caller(ctx.caller), payload)
    return HandlerResult(data=student.to_wire())


async def delete(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(IdRequest, ctx.params)
    await service.delete_student(ctx.db, TenantScope.for_caller(ctx.caller), payload.id)
    return HandlerResult(message="Student deleted successfully")


async def transfer(ctx: HandlerContext) -> HandlerResult:
    payload = parse_payload(StudentTransfer, ctx.request.body)
    student = await service.transfer_student(ctx.db, TenantScope.for_caller(ctx.caller), payload)
    return HandlerResult(data=student.to_wire(), message="Student transferred successfully")


ENDPOINTS = {
    "create": Endpoint(create, "POST", ROLE_STACK, ANY_ADMIN),
    "get": Endpoint(get, "POST", ROLE_STACK, ANY_ADMIN),
    "list": Endpoint(list_, "POST", LIST_STACK, ANY_ADMIN),
    "update": Endpoint(update, "PUT", ROLE_STACK, ANY_ADMIN),
    "delete": Endpoint(delete, "DELETE", ROLE_STACK, ANY_ADMIN),
    "transfer": Endpoint(transfer, "POST", ROLE_STACK, ANY_ADMIN),
}
