"""FHIR-style resource endpoints — create, read, search.

Every route runs the interception hooks around the store, in the order
the host server would: pre-create before storing, pre-search before
querying, pre-show on everything returned, the response filter last.
"""

from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from bsnguard.deps import get_pipeline, get_request_context, get_store
from bsnguard.models import Bundle, BundleEntry, parse_resource
from bsnguard.pipeline import InterceptionPipeline, RequestContext
from bsnguard.store import SUBJECT_PARAMS, ResourceStore, SearchRequest

router = APIRouter(prefix="/fhir", tags=["resources"])

_RESOURCE_TYPE = re.compile(r"[A-Z][A-Za-z]+")
# patient, patient:identifier, patient.identifier
_PARAM_NAME = re.compile(r"(?P<name>[a-z]+)(?:[:.]identifier)?")


def _check_type(resource_type: str) -> None:
    if not _RESOURCE_TYPE.fullmatch(resource_type):
        raise HTTPException(status_code=404, detail=f"Unknown resource type: {resource_type}")


def _location(resource_type: str, resource_id: str) -> str:
    return f"{router.prefix}/{resource_type}/{resource_id}"


def _search_params(request: Request) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for key, raw in request.query_params.multi_items():
        match = _PARAM_NAME.fullmatch(key)
        name = match.group("name") if match and match.group("name") in SUBJECT_PARAMS else key
        values = [value for value in raw.split(",") if value]
        params.setdefault(name, []).extend(values)
    return params


@router.post("/{resource_type}", status_code=201)
def create_resource(
    resource_type: str,
    payload: dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_request_context),
    store: ResourceStore = Depends(get_store),
    pipeline: InterceptionPipeline = Depends(get_pipeline),
):
    _check_type(resource_type)
    payload.setdefault("resourceType", resource_type)
    if payload["resourceType"] != resource_type:
        raise HTTPException(
            status_code=400,
            detail=f"resourceType {payload['resourceType']!r} does not match endpoint {resource_type!r}",
        )
    try:
        resource = parse_resource(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422, detail=exc.errors(include_url=False, include_context=False)
        ) from exc

    resource = pipeline.on_pre_create(resource, ctx)
    stored = store.create(resource)
    location = _location(resource_type, stored.id)

    (shown,) = pipeline.on_pre_show([stored], ctx)
    body = pipeline.on_response_filter(shown, ctx, location=location)
    return JSONResponse(status_code=201, content=body.to_json(), headers={"Location": location})


@router.get("/{resource_type}/{resource_id}")
def read_resource(
    resource_type: str,
    resource_id: str,
    ctx: RequestContext = Depends(get_request_context),
    store: ResourceStore = Depends(get_store),
    pipeline: InterceptionPipeline = Depends(get_pipeline),
):
    _check_type(resource_type)
    record = store.read(resource_type, resource_id)
    (shown,) = pipeline.on_pre_show([record], ctx)
    return pipeline.on_response_filter(shown, ctx).to_json()


@router.get("/{resource_type}")
def search_resources(
    resource_type: str,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    store: ResourceStore = Depends(get_store),
    pipeline: InterceptionPipeline = Depends(get_pipeline),
):
    _check_type(resource_type)
    search = SearchRequest(resource_type=resource_type, params=_search_params(request))
    search = pipeline.on_pre_search(search, ctx)
    records = store.search(search)
    shown = pipeline.on_pre_show(records, ctx, bundle=True)
    bundle = Bundle(
        total=len(shown),
        entry=[
            BundleEntry(full_url=_location(record.resource_type, record.id), resource=record)
            for record in shown
        ],
    )
    return pipeline.on_response_filter(bundle, ctx).to_json()
