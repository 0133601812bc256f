"""Negotiation endpoints used by the browser client and the voice provider.

- ``POST /start``: validate a submission, create a negotiation, start the call.
- ``GET /status/{negotiation_id}``: the negotiation's current snapshot.
- ``POST /log``: the provider's end-of-call webhook.
- ``GET /test-phone``: diagnostic view of the provider's dial-out numbers.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from dropit.api.uploads import discard_upload, save_upload
from dropit.auth.dependencies import OptionalUser
from dropit.domain.errors import ProviderError, ValidationError
from dropit.domain.models import SubmissionRequest
from dropit.tracker.service import NegotiationService

logger = structlog.get_logger()

router = APIRouter(tags=["negotiations"])


def _service(request: Request) -> NegotiationService:
    return request.app.state.services["negotiations"]


@router.post("/start", response_model=None)
async def start_negotiation(
    request: Request,
    user: OptionalUser,
    user_message: Annotated[str | None, Form(alias="userMessage")] = None,
    order_number: Annotated[str | None, Form(alias="orderNumber")] = None,
    full_name: Annotated[str | None, Form(alias="fullName")] = None,
    email: Annotated[str | None, Form()] = None,
    phone_number: Annotated[str | None, Form(alias="phoneNumber")] = None,
    appointment_time: Annotated[str | None, Form(alias="appointmentTime")] = None,
    appointment_action: Annotated[str | None, Form(alias="appointmentAction")] = None,
    screenshot: Annotated[UploadFile | None, File()] = None,
) -> dict[str, Any] | JSONResponse:
    """Accept a request and start the call in the background.

    Returns as soon as the negotiation exists; the client polls
    ``/status/{negotiationId}`` for progress.
    """
    settings = request.app.state.settings
    attachment_ref = None
    try:
        if screenshot is not None and screenshot.filename:
            attachment_ref = await save_upload(
                screenshot, settings.upload_dir, settings.max_upload_bytes
            )

        submission = SubmissionRequest(
            user_message=user_message,
            order_number=order_number,
            attachment_ref=attachment_ref,
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            appointment_time=appointment_time,
            appointment_action=appointment_action,
            submitted_by=user.email if user is not None else None,
        )
        negotiation_id = await _service(request).submit(submission)
    except ValidationError as exc:
        logger.info("Submission rejected", error=str(exc))
        if attachment_ref is not None:
            await discard_upload(attachment_ref, settings.upload_dir)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)
    except Exception:
        logger.exception("Failed to start negotiation")
        return JSONResponse(
            {"success": False, "error": "Failed to start negotiation"}, status_code=500
        )

    return {
        "success": True,
        "negotiationId": negotiation_id,
        "message": "Negotiation started successfully",
    }


@router.get("/status/{negotiation_id}")
async def get_status(negotiation_id: str, request: Request) -> dict[str, Any]:
    """Return the negotiation snapshot.  Unknown ids are answered with 404."""
    return _service(request).get_status(negotiation_id)


@router.post("/log")
async def log_result(request: Request) -> dict[str, bool]:
    """Accept ``{refund, code, callId}`` from the provider.

    Always answers ``{"success": true}`` so the provider never retries.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Result webhook with unreadable body")
        return {"success": True}
    if not isinstance(payload, dict):
        logger.warning("Result webhook with unexpected body", body_type=type(payload).__name__)
        return {"success": True}

    call_id = payload.get("callId")
    try:
        await _service(request).log_result(
            str(call_id) if call_id else None,
            refund=payload.get("refund"),
            code=payload.get("code"),
            negotiation_id=payload.get("negotiationId"),
        )
    except Exception:
        logger.exception("Failed to log result", call_id=call_id)
    return {"success": True}


@router.get("/test-phone", response_model=None)
async def test_phone(request: Request) -> dict[str, Any] | JSONResponse:
    """List the provider account's dial-out numbers and the one in use."""
    provider = _service(request).provider
    settings = request.app.state.settings
    try:
        numbers = await provider.list_phone_numbers()
    except ProviderError as exc:
        return JSONResponse({"success": False, "error": str(exc)}, status_code=502)

    return {
        "success": True,
        "agentPhoneNumber": settings.agent_phone_number,
        "resolvedPhoneNumberId": provider.phone_number_id,
        "phoneNumbers": [{"id": n.id, "number": n.number} for n in numbers],
    }
