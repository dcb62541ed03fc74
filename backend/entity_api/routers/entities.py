"""
Generic entity dispatcher.

Materialises the CRUD surface for every registered descriptor; there is
no per-entity controller code.

    GET    /<collection>          paginated list (offset or cursor)
    GET    /<collection>/{id}     single output DTO
    POST   /<collection>          create, 201 with the output DTO
    PATCH  /<collection>/{id}     sparse update, 204
    DELETE /<collection>/{id}     delete (?scoped=true soft-deletes), 204

Every route checks (user, request path, method) against the enforcer
before touching the store.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.datastructures import QueryParams as RequestQuery

from entity_shared.config.constants import QueryParams
from entity_shared.config.logging import entity_api_logger as logger
from entity_shared.infrastructure.db import get_db
from entity_api.core.kernel import Kernel
from entity_api.routers._common.pagination import cursor_response, dump_output, offset_response
from entity_api.routers.dependencies import (
    authorize_request,
    get_kernel,
    parse_entity_id,
    request_scope,
)
from entity_api.services.entity.descriptor import EntityDescriptor
from entity_api.services.entity.naming import camel_to_snake
from entity_api.services.entity.pagination import CursorParams, OffsetParams
from entity_api.services.entity.preload import parse_include_param
from entity_api.services.entity.registry import EntityRegistry


def is_cursor_request(params: RequestQuery) -> bool:
    """Cursor mode when ``cursor`` is present, or ``limit`` without offset parameters."""
    if QueryParams.CURSOR in params:
        return True
    return QueryParams.LIMIT in params and QueryParams.PAGE not in params and QueryParams.PAGE_SIZE not in params


def extract_filters(params: RequestQuery) -> dict[str, list[str]]:
    """Every non-reserved parameter, repeated values kept. ``user_member_id`` is dropped."""
    return {
        key: params.getlist(key)
        for key in params.keys()
        if key not in QueryParams.RESERVED and key != QueryParams.MEMBER
    }


def scope_to_membership(descriptor: EntityDescriptor, filters: dict[str, list[str]], ctx: dict[str, Any]) -> None:
    """Restrict a membership-scoped list to the caller unless a bypass role applies."""
    config = descriptor.membership_config
    if config is None:
        return
    if set(ctx.get("roles", [])).intersection(config.bypass_roles):
        return
    filters[QueryParams.MEMBER] = [ctx["sub"]]


# =============================================================================
# Endpoint factories (one closure per descriptor and verb)
# =============================================================================


def _list_endpoint(descriptor: EntityDescriptor):
    entity_name = descriptor.entity_name

    def list_entities(
        request: Request,
        ctx: dict = Depends(authorize_request),
        kernel: Kernel = Depends(get_kernel),
        db: Session = Depends(get_db),
    ) -> JSONResponse:
        params = request.query_params
        include = parse_include_param(params.get(QueryParams.INCLUDE))
        filters = extract_filters(params)
        scope_to_membership(descriptor, filters, ctx)

        if is_cursor_request(params):
            cursor_params = CursorParams.parse(params.get(QueryParams.CURSOR), params.get(QueryParams.LIMIT))
            page = kernel.service.list_cursor(db, entity_name, cursor_params, filters=filters, include=include)
            return JSONResponse(cursor_response(page))

        offset_params = OffsetParams.parse(params.get(QueryParams.PAGE), params.get(QueryParams.PAGE_SIZE))
        page = kernel.service.list_offset(db, entity_name, offset_params, filters=filters, include=include)
        return JSONResponse(offset_response(page))

    return list_entities


def _get_endpoint(descriptor: EntityDescriptor):
    entity_name = descriptor.entity_name

    def get_entity(
        entity_id: str,
        request: Request,
        ctx: dict = Depends(authorize_request),
        kernel: Kernel = Depends(get_kernel),
        db: Session = Depends(get_db),
    ) -> JSONResponse:
        include = parse_include_param(request.query_params.get(QueryParams.INCLUDE))
        output = kernel.service.get(db, entity_name, parse_entity_id(entity_id), include=include)
        return JSONResponse(dump_output(output))

    return get_entity


def _create_endpoint(descriptor: EntityDescriptor):
    entity_name = descriptor.entity_name
    create_dto = descriptor.create_dto

    def create_entity(
        body: create_dto,
        request: Request,
        ctx: dict = Depends(authorize_request),
        kernel: Kernel = Depends(get_kernel),
        db: Session = Depends(get_db),
    ) -> JSONResponse:
        output = kernel.service.create(
            db,
            entity_name,
            body,
            user_id=ctx["sub"],
            request_scope=request_scope(request, ctx),
        )
        return JSONResponse(dump_output(output), status_code=status.HTTP_201_CREATED)

    return create_entity


def _update_endpoint(descriptor: EntityDescriptor):
    entity_name = descriptor.entity_name
    edit_dto = descriptor.edit_dto

    def update_entity(
        entity_id: str,
        body: edit_dto,
        request: Request,
        ctx: dict = Depends(authorize_request),
        kernel: Kernel = Depends(get_kernel),
        db: Session = Depends(get_db),
    ) -> Response:
        kernel.service.update(
            db,
            entity_name,
            parse_entity_id(entity_id),
            body,
            user_id=ctx["sub"],
            request_scope=request_scope(request, ctx),
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return update_entity


def _delete_endpoint(descriptor: EntityDescriptor):
    entity_name = descriptor.entity_name

    def delete_entity(
        entity_id: str,
        request: Request,
        scoped: bool = Query(False, description="Soft-delete instead of removing the row"),
        ctx: dict = Depends(authorize_request),
        kernel: Kernel = Depends(get_kernel),
        db: Session = Depends(get_db),
    ) -> Response:
        kernel.service.delete(
            db,
            entity_name,
            parse_entity_id(entity_id),
            scoped=scoped,
            user_id=ctx["sub"],
            request_scope=request_scope(request, ctx),
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return delete_entity


# =============================================================================
# Router
# =============================================================================


def _route_options(descriptor: EntityDescriptor, verb: str) -> dict[str, Any]:
    swagger = descriptor.swagger_config
    tag = swagger.tag if swagger and swagger.tag else descriptor.resource_segment
    summary = f"{verb} {descriptor.entity_name}"
    if swagger and swagger.summary:
        summary = f"{summary}: {swagger.summary}"
    options: dict[str, Any] = {
        "tags": [tag],
        "summary": summary,
        "response_model": None,
        "name": f"{verb.lower().replace(' ', '_')}_{camel_to_snake(descriptor.entity_name)}",
    }
    if swagger and swagger.description:
        options["description"] = swagger.description
    return options


def add_entity_routes(router: APIRouter, descriptor: EntityDescriptor) -> None:
    """Mount the five CRUD routes for one descriptor."""
    collection = f"/{descriptor.resource_segment}"
    resource = f"{collection}/{{entity_id}}"

    router.add_api_route(
        collection, _list_endpoint(descriptor), methods=["GET"],
        **_route_options(descriptor, "List"),
    )
    router.add_api_route(
        resource, _get_endpoint(descriptor), methods=["GET"],
        **_route_options(descriptor, "Get"),
    )
    router.add_api_route(
        collection, _create_endpoint(descriptor), methods=["POST"],
        status_code=status.HTTP_201_CREATED,
        **_route_options(descriptor, "Create"),
    )
    router.add_api_route(
        resource, _update_endpoint(descriptor), methods=["PATCH"],
        status_code=status.HTTP_204_NO_CONTENT,
        **_route_options(descriptor, "Update"),
    )
    router.add_api_route(
        resource, _delete_endpoint(descriptor), methods=["DELETE"],
        status_code=status.HTTP_204_NO_CONTENT,
        **_route_options(descriptor, "Delete"),
    )


def build_entity_router(registry: EntityRegistry) -> APIRouter:
    """One router carrying the routes of every registered entity."""
    router = APIRouter()
    for descriptor in registry.list():
        add_entity_routes(router, descriptor)
        logger.debug(
            "Entity routes mounted",
            entity=descriptor.entity_name,
            path=descriptor.collection_path,
        )
    return router
