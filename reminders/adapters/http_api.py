"""Control-plane HTTP API.

Thin authenticated wrappers around the notifier for on-demand sends
(confirmation, update, broadcast) plus an unauthenticated `/health`. No
scheduling or dedup logic lives here.
"""

from __future__ import annotations

import hmac
import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..application.notifier import Notifier
from ..types import BROADCAST, CONFIRMATION, EMAIL, SMS, UPDATE, WHATSAPP

logger = logging.getLogger(__name__)


# Pydantic Models
class ContactPreferences(BaseModel):
    whatsappEnabled: Optional[bool] = None
    smsEnabled: Optional[bool] = None
    emailEnabled: Optional[bool] = None


class ConfirmationRequest(ContactPreferences):
    phone: Optional[str] = None
    email: Optional[str] = None
    clientName: Optional[str] = None
    businessName: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    channel: Optional[str] = None


class UpdateRequest(ContactPreferences):
    phone: Optional[str] = None
    email: Optional[str] = None
    clientName: Optional[str] = None
    businessName: Optional[str] = None
    channel: Optional[str] = None


class BroadcastClient(ContactPreferences):
    phone: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class BroadcastRequest(BaseModel):
    businessId: Optional[str] = None
    businessName: Optional[str] = None
    message: Optional[str] = None
    channel: Optional[str] = None
    clients: Optional[list[BroadcastClient]] = None


def create_app(
    *,
    notifier: Notifier,
    api_secret: str,
    default_channel: str = WHATSAPP,
    provider: Any = None,
    scheduler: Any = None,
    broadcast_delay_seconds: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """Build the control-plane app; `scheduler` is started with the app."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if scheduler is not None:
            await scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()

    app = FastAPI(title="Appointment reminder dispatcher", lifespan=lifespan)

    @app.exception_handler(HTTPException)
    async def http_error_handler(_request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"Invalid request body: {exc.errors()}"},
        )

    def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
        if not x_api_key or not hmac.compare_digest(x_api_key.encode(), api_secret.encode()):
            raise HTTPException(status_code=401, detail="Invalid or missing API key")

    def resolve_channel(requested: Optional[str]) -> str:
        channel = (requested or default_channel).strip().lower()
        if not notifier.supports(channel):
            raise HTTPException(status_code=400, detail=f"Channel {channel!r} is not available")
        return channel

    @app.get("/health")
    def health() -> dict[str, Any]:
        body: dict[str, Any] = {"status": "ok", "timestamp": datetime.now(tz=UTC).isoformat()}
        if scheduler is not None:
            body["scheduler"] = {
                "running": scheduler.is_running,
                "jobs": scheduler.get_jobs_info(),
            }
        return body

    @app.post("/api/send-confirmation", dependencies=[Depends(require_api_key)])
    def send_confirmation(request: ConfirmationRequest) -> Any:
        channel = resolve_channel(request.channel)
        if _opted_out(request, channel):
            return _skipped(channel)

        required = {
            _destination_field(channel): _destination(request, channel),
            "clientName": request.clientName,
            "businessName": request.businessName,
            "date": request.date,
            "time": request.time,
        }
        _require_fields(required)

        context = {
            "client_name": request.clientName,
            "client_email": request.email,
            "client_phone": request.phone,
            "business_name": request.businessName,
            "date": request.date,
            "time": request.time,
        }
        result = notifier.notify(channel, CONFIRMATION, context)
        if not result["success"]:
            return JSONResponse(status_code=500, content={"success": False, "error": result["error"]})
        logger.info("[CONTROL] kind=confirmation channel=%s client=%s", channel, request.clientName)
        return {"success": True, "message": "Confirmation sent"}

    @app.post("/api/send-update", dependencies=[Depends(require_api_key)])
    def send_update(request: UpdateRequest) -> Any:
        channel = resolve_channel(request.channel)
        if _opted_out(request, channel):
            return _skipped(channel)

        required = {
            _destination_field(channel): _destination(request, channel),
            "clientName": request.clientName,
            "businessName": request.businessName,
        }
        _require_fields(required)

        context = {
            "client_name": request.clientName,
            "client_email": request.email,
            "client_phone": request.phone,
            "business_name": request.businessName,
        }
        result = notifier.notify(channel, UPDATE, context)
        if not result["success"]:
            return JSONResponse(status_code=500, content={"success": False, "error": result["error"]})
        logger.info("[CONTROL] kind=update channel=%s client=%s", channel, request.clientName)
        return {"success": True, "message": "Update notification sent"}

    @app.post("/api/send-broadcast", dependencies=[Depends(require_api_key)])
    def send_broadcast(request: BroadcastRequest) -> Any:
        channel = resolve_channel(request.channel)
        _require_fields({"businessName": request.businessName, "message": request.message})

        clients = request.clients
        if not clients and request.businessId and provider is not None:
            clients = _clients_from_bookings(provider, request.businessId, channel)
        if not clients:
            raise HTTPException(status_code=400, detail="No clients found to send broadcast")

        enabled = [client for client in clients if not _opted_out(client, channel)]
        results: dict[str, Any] = {
            "success": 0,
            "failed": 0,
            "skipped": len(clients) - len(enabled),
            "errors": [],
        }
        logger.info(
            "[BROADCAST START] business=%s channel=%s recipients=%d opted_out=%d",
            request.businessName,
            channel,
            len(enabled),
            results["skipped"],
        )

        for index, client in enumerate(enabled):
            if index and broadcast_delay_seconds > 0:
                sleep(broadcast_delay_seconds)
            context = {
                "client_name": client.name,
                "client_email": client.email,
                "client_phone": client.phone,
                "business_name": request.businessName,
                "message": request.message,
            }
            result = notifier.notify(channel, BROADCAST, context)
            if result["success"]:
                results["success"] += 1
            else:
                results["failed"] += 1
                results["errors"].append(
                    {"recipient": _destination(client, channel), "error": result["error"]}
                )

        logger.info(
            "[BROADCAST DONE] business=%s sent=%d failed=%d skipped=%d",
            request.businessName,
            results["success"],
            results["failed"],
            results["skipped"],
        )
        return {
            "success": True,
            "message": f"Broadcast sent to {results['success']} clients",
            "results": results,
        }

    return app


def _opted_out(preferences: ContactPreferences, channel: str) -> bool:
    flag = {
        WHATSAPP: preferences.whatsappEnabled,
        SMS: preferences.smsEnabled,
        EMAIL: preferences.emailEnabled,
    }.get(channel)
    return flag is False


def _skipped(channel: str) -> dict[str, Any]:
    return {
        "success": False,
        "skipped": True,
        "message": f"User has {channel} notifications disabled",
    }


def _destination_field(channel: str) -> str:
    return "email" if channel == EMAIL else "phone"


def _destination(request: Any, channel: str) -> Optional[str]:
    return request.email if channel == EMAIL else request.phone


def _require_fields(fields: dict[str, Any]) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required fields: {', '.join(fields)}",
        )


def _clients_from_bookings(provider: Any, business_id: str, channel: str) -> list[BroadcastClient]:
    """Unique clients (by destination) found in the business's bookings."""
    unique: dict[str, BroadcastClient] = {}
    for booking in provider.list_events(business_id):
        destination = booking.get("client_email") if channel == EMAIL else booking.get("client_phone")
        if not destination or not booking.get("client_name") or destination in unique:
            continue
        unique[destination] = BroadcastClient(
            phone=booking.get("client_phone"),
            email=booking.get("client_email"),
            name=booking.get("client_name"),
            whatsappEnabled=booking.get("notify_whatsapp", True),
            smsEnabled=booking.get("notify_sms", True),
            emailEnabled=booking.get("notify_email", True),
        )
    return list(unique.values())
