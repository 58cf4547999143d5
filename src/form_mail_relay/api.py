# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""
FastAPI application factory and HTTP schemas for the form mail relay.

The module exposes a `create_app` function that builds the public form
endpoints and the operational endpoints. Form endpoints are open to the
configured CORS origins; ``/metrics`` and ``/api/test-email`` additionally
require the ``X-API-Token`` header when an API token is configured.
"""

from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from .errors import UploadError, ValidationError
from .formdata import FILE_FIELD, MultipartFormReader
from .logger import get_logger
from .models import DispatchOutcome, OutcomeKind
from .relay import FormMailRelay
from .validation import APPLICATION_FIELDS

API_TOKEN_HEADER_NAME = "X-API-Token"
api_key_scheme = APIKeyHeader(name=API_TOKEN_HEADER_NAME, auto_error=False)

logger = get_logger("FormMailRelayAPI")


async def require_token(request: Request, api_token: str | None = Depends(api_key_scheme)) -> None:
    """Validate the API token carried in the ``X-API-Token`` header.

    When no token is configured the dependency is bypassed.
    """
    expected = getattr(request.app.state, "api_token", None)
    if expected is None:
        return
    if not api_token or api_token != expected:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API token")


auth_dependency = Depends(require_token)


class ContactPayload(BaseModel):
    """JSON body of ``POST /api/send-email``.

    Every field is optional at the schema level so that missing values are
    reported by the relay's validator with the form's own error message.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    to_email: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class StatusResponse(BaseModel):
    ok: bool


# The career form is read by MultipartFormReader, not by FastAPI body
# parameters, so its request body is described here for the OpenAPI schema.
APPLICATION_FORM_SCHEMA: Dict[str, Any] = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {
                        **{name: {"type": "string"} for name in APPLICATION_FIELDS},
                        FILE_FIELD: {"type": "string", "format": "binary"},
                    },
                }
            }
        },
    }
}


CONTACT_MESSAGES = {
    OutcomeKind.SENT: "Email sent successfully",
    OutcomeKind.SENT_WITH_FALLBACK: "Email sent successfully using the service sender address",
    OutcomeKind.DELIVERY_FAILED: "Failed to send email",
}
APPLICATION_MESSAGES = {
    OutcomeKind.SENT: "Application sent successfully",
    OutcomeKind.SENT_WITH_FALLBACK: "Application sent successfully using the service sender address",
    OutcomeKind.DELIVERY_FAILED: "Failed to send application",
}
TEST_MESSAGES = {
    OutcomeKind.SENT: "Test email sent successfully",
    OutcomeKind.SENT_WITH_FALLBACK: "Test email sent successfully using the service sender address",
    OutcomeKind.DELIVERY_FAILED: "Failed to send test email",
}


def outcome_response(outcome: DispatchOutcome, messages: Dict[OutcomeKind, str]) -> JSONResponse:
    """Translate a :class:`DispatchOutcome` into the HTTP status and body."""
    if outcome.ok:
        body = MessageResponse(message=messages[outcome.kind])
        return JSONResponse(status_code=200, content=body.model_dump())
    if outcome.kind is OutcomeKind.DELIVERY_FAILED:
        body = ErrorResponse(error=messages[OutcomeKind.DELIVERY_FAILED], details=outcome.details or outcome.reason)
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    body = ErrorResponse(error=outcome.reason or "Invalid request", details=outcome.details)
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


def create_app(
    relay: FormMailRelay,
    api_token: str | None = None,
    cors_origins: Optional[List[str]] = None,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    relay:
        :class:`form_mail_relay.relay.FormMailRelay` handling submissions.
    api_token:
        Optional secret protecting the operational endpoints.
    cors_origins:
        Origins allowed to call the form endpoints from a browser.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    api = FastAPI(title="Form Mail Relay", lifespan=lifespan)
    api.state.relay = relay
    api.state.api_token = api_token
    if cors_origins:
        api.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    @api.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request on %s: %s", request.url.path, exc.errors())
        body = ErrorResponse(error="Invalid request", details="; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        ))
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    @api.get("/status", response_model=StatusResponse)
    async def status_endpoint():
        """Return a simple health status payload."""
        return StatusResponse(ok=True)

    @api.post("/api/send-email", response_model=MessageResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def send_email(payload: ContactPayload):
        """Relay a contact form message."""
        outcome = await relay.submit_contact(payload.model_dump())
        return outcome_response(outcome, CONTACT_MESSAGES)

    @api.post(
        "/api/send-career-application",
        response_model=MessageResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        openapi_extra=APPLICATION_FORM_SCHEMA,
    )
    async def send_career_application(request: Request):
        """Relay a career application with its resume attached.

        The body is parsed in memory while it is received so an oversized
        resume is refused before the rest of it is read.
        """
        reader = MultipartFormReader(relay.policy)
        try:
            reader.check_length(request.headers.get("content-length"))
            fields, upload = await reader.read(request.headers.get("content-type"), request.stream())
        except UploadError as exc:
            return outcome_response(relay.reject_upload(exc), APPLICATION_MESSAGES)
        except ValidationError as exc:
            logger.warning("Malformed request on %s: %s", request.url.path, exc)
            body = ErrorResponse(error=exc.message, details=exc.details)
            return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))
        outcome = await relay.submit_application(fields, upload)
        return outcome_response(outcome, APPLICATION_MESSAGES)

    @api.get("/api/test-email", response_model=MessageResponse, dependencies=[auth_dependency])
    async def send_test_email():
        """Send the fixed test message to the configured test recipient."""
        outcome = await relay.send_test()
        return outcome_response(outcome, TEST_MESSAGES)

    @api.get("/metrics", dependencies=[auth_dependency])
    async def metrics():
        """Expose Prometheus metrics collected by the relay."""
        return Response(content=relay.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    return api
