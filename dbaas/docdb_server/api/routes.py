"""
API routes for the DocDB HTTP server.

Every route resolves the collection from the schema descriptor header.
A missing or unparseable descriptor answers 404 before the request body is
read or any store is touched.

    POST   /        create
    GET    /        list (filters, sort, skip/limit/page)
    GET    /{id}    read one, same response shape as list
    PUT    /{id}    replace
    PATCH  /{id}    partial update (set / inc / unset)
    DELETE /{id}    delete

Single-document verbs answer 204 when nothing matched.
"""

import json
import logging
from typing import Any, Union

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..schema import SchemaDescriptor, parse_descriptor
from ..service import DocumentService
from .querystring import decode_query

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])


# --- Request Models ---


class UpdateRequest(BaseModel):
    """Partial update body."""

    model_config = ConfigDict(populate_by_name=True)

    set_fields: dict[str, Any] = Field(
        default_factory=dict, alias="set", description="Field assignments"
    )
    inc_fields: dict[str, Union[int, float]] = Field(
        default_factory=dict, alias="inc", description="Numeric increments"
    )
    unset_fields: Union[dict[str, Any], list[str]] = Field(
        default_factory=dict, alias="unset", description="Fields to remove"
    )


# --- Dependencies ---


def get_service(request: Request) -> DocumentService:
    """Get document service from app state."""
    return request.app.state.service


def get_descriptor(request: Request) -> SchemaDescriptor:
    """Parse the schema descriptor header, or answer 404."""
    header = request.app.state.settings.schema_header
    descriptor = parse_descriptor(request.headers.get(header))
    if descriptor is None:
        logger.debug(f"Request without usable descriptor: {request.method} {request.url.path}")
        raise HTTPException(status_code=404, detail="Not Found")
    return descriptor


def get_params(request: Request) -> dict[str, Any]:
    """Decode bracket-notation query parameters."""
    return decode_query(request.url.query)


async def get_form(
    request: Request,
    descriptor: SchemaDescriptor = Depends(get_descriptor),
) -> dict[str, Any]:
    """Read the JSON object body once the descriptor is known.

    Depending on get_descriptor keeps the 404 for a missing descriptor
    ahead of any body error.

    An empty body or a JSON null is an empty form.

    Raises:
        RequestValidationError: If the body is not a JSON object (422)
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        form = json.loads(raw)
    except ValueError:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        )
    if form is None:
        return {}
    if not isinstance(form, dict):
        raise RequestValidationError(
            [
                {
                    "type": "dict_type",
                    "loc": ("body",),
                    "msg": "Input should be a valid dictionary",
                    "input": form,
                }
            ]
        )
    return form


async def get_update(form: dict[str, Any] = Depends(get_form)) -> UpdateRequest:
    """Validate the PATCH body."""
    try:
        return UpdateRequest.model_validate(form)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)]
        )


def _or_no_content(document: dict[str, Any] | None) -> Any:
    if document is None:
        return Response(status_code=204)
    return document


# --- Document Routes ---


@router.post("/")
async def create_document(
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    form: dict[str, Any] = Depends(get_form),
    service: DocumentService = Depends(get_service),
):
    """Create a document."""
    return await service.create(descriptor, form)


@router.get("/")
async def list_documents(
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    params: dict[str, Any] = Depends(get_params),
    service: DocumentService = Depends(get_service),
):
    """List documents matching the query parameters."""
    return await service.read(descriptor, None, params)


@router.get("/{document_id}")
async def get_document(
    document_id: str,
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    params: dict[str, Any] = Depends(get_params),
    service: DocumentService = Depends(get_service),
):
    """Read a document by identity."""
    return await service.read(descriptor, document_id, params)


@router.put("/{document_id}")
async def replace_document(
    document_id: str,
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    form: dict[str, Any] = Depends(get_form),
    params: dict[str, Any] = Depends(get_params),
    service: DocumentService = Depends(get_service),
):
    """Replace a document, resetting its version."""
    document = await service.replace(descriptor, document_id, form, params)
    return _or_no_content(document)


@router.patch("/{document_id}")
async def update_document(
    document_id: str,
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    body: UpdateRequest = Depends(get_update),
    params: dict[str, Any] = Depends(get_params),
    service: DocumentService = Depends(get_service),
):
    """Apply set/inc/unset to a document and bump its version."""
    document = await service.update(
        descriptor,
        document_id,
        set_fields=body.set_fields,
        inc_fields=body.inc_fields,
        unset_fields=body.unset_fields,
        params=params,
    )
    return _or_no_content(document)


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    descriptor: SchemaDescriptor = Depends(get_descriptor),
    params: dict[str, Any] = Depends(get_params),
    service: DocumentService = Depends(get_service),
):
    """Delete a document."""
    document = await service.delete(descriptor, document_id, params)
    return _or_no_content(document)
