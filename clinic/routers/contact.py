from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from clinic.config import settings
from clinic.errors import ContactError
from clinic.schemas.contact import ContactResponse
from clinic.security import client_identity, limiter
from clinic.services.pipeline import ContactPipeline, ContactRequest

router = APIRouter(prefix="", tags=["contact"])

# Every method reaches the pipeline so that it, not the router, decides 405.
CONTACT_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_pipeline(request: Request) -> ContactPipeline:
    return request.app.state.pipeline


async def read_fields(request: Request) -> dict[str, str]:
    """Return submitted fields from a JSON or form-encoded body."""
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError:
            return {}
        if not isinstance(payload, dict):
            return {}
        return {
            str(key): "" if value is None else str(value)
            for key, value in payload.items()
        }
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.api_route(
    "/process-contact",
    methods=CONTACT_METHODS,
    response_model=ContactResponse,
)
@limiter.limit(settings.burst_rate_limit)
async def process_contact(
    request: Request,
    pipeline: ContactPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Accept a contact-form submission from the clinic website."""
    method = request.method.upper()
    origin = request.headers.get("origin")
    fields = await read_fields(request) if method == "POST" else {}
    contact_request = ContactRequest(
        method=method,
        client_ip=client_identity(request),
        fields=fields,
        origin=origin,
        referer=request.headers.get("referer"),
        user_agent=request.headers.get("user-agent", ""),
    )
    headers = pipeline.origin_guard.cors_headers(origin)

    try:
        result = await run_in_threadpool(pipeline.process, contact_request)
    except ContactError as exc:
        return JSONResponse(
            {"success": False, "message": exc.message},
            status_code=exc.status_code,
            headers=headers,
        )
    return JSONResponse(result.model_dump(), headers=headers)
