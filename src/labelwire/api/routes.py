"""REST API routes for Labelwire."""

import base64
import binascii
import logging
import secrets
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from labelwire.errors import ErrorKind, InvalidArgumentError, LabelwireError, error_payload, map_exception
from labelwire.models.job import PrintOptions, PrintResult
from labelwire.models.printer import BluetoothStatus, PrinterDevice, PrinterStatus
from labelwire.service import PrinterService
from labelwire.transports.tcp import DEFAULT_TCP_PORT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["api"])

# These will be set by the app during startup
_app_state: dict[str, Any] = {}

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.DEVICE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NOT_CONNECTED: status.HTTP_409_CONFLICT,
    ErrorKind.BLUETOOTH_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.BLUETOOTH_DISABLED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def set_app_state(service: PrinterService, api_key: str | None = None) -> None:
    """Set application state references for the routes."""
    _app_state["service"] = service
    _app_state["api_key"] = api_key


def _service() -> PrinterService:
    service = _app_state.get("service")
    if service is None:
        raise HTTPException(status_code=500, detail="Printer service not initialized")
    return service


async def labelwire_error_handler(request: Request, exc: LabelwireError) -> JSONResponse:
    """Render classified errors as {errorCode, message, details}."""
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_502_BAD_GATEWAY)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as INVALID_ARGUMENT."""
    content = error_payload(ErrorKind.INVALID_ARGUMENT, "Invalid request", jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Classify anything else that escaped a route, e.g. a raw OSError from libusb."""
    kind, message = map_exception(exc)
    logger.error(f"Unhandled error on {request.url.path}: {exc!r}")
    status_code = STATUS_BY_KIND.get(kind, status.HTTP_502_BAD_GATEWAY)
    return JSONResponse(status_code=status_code, content=error_payload(kind, message))


async def verify_api_key(request: Request) -> None:
    """Verify API key if configured.

    API key can be provided via:
    - X-API-Key header
    - Authorization: Bearer <key> header

    If no API key is configured, all requests are allowed.
    """
    configured_key = _app_state.get("api_key")

    # No API key configured = open access
    if not configured_key:
        return

    provided_key = None
    if "X-API-Key" in request.headers:
        provided_key = request.headers["X-API-Key"]
    elif "Authorization" in request.headers:
        auth = request.headers["Authorization"]
        if auth.startswith("Bearer "):
            provided_key = auth[7:]

    if not provided_key or not secrets.compare_digest(provided_key, configured_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidArgumentError(f"{field} must be base64 encoded: {e}") from e


# Request and response models


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectRequest(CamelModel):
    """Connect to a device from a discovery result."""

    device: PrinterDevice
    timeout: int | None = Field(default=None, gt=0)


class BluetoothConnectRequest(CamelModel):
    address: str
    timeout: int | None = Field(default=None, gt=0)


class TCPConnectRequest(CamelModel):
    ip: str
    port: int = DEFAULT_TCP_PORT
    timeout: int | None = Field(default=None, gt=0)


class USBConnectRequest(CamelModel):
    serial_number: str
    timeout: int | None = Field(default=None, gt=0)


class ConnectionInfo(CamelModel):
    """Current connection state."""

    connected: bool
    device: dict[str, Any] | None = None


class PrintRequest(CamelModel):
    """Print request body; `data` and `options.responseTerminator` are base64."""

    data: str
    options: dict[str, Any] | None = None


class PrintResponse(CamelModel):
    success: bool
    message: str | None = None
    response_data: str | None = None  # base64

    @classmethod
    def from_result(cls, result: PrintResult) -> "PrintResponse":
        encoded = base64.b64encode(result.response_data).decode("ascii") if result.response_data is not None else None
        return cls(success=result.success, message=result.message, response_data=encoded)


class ReadTimeoutRequest(CamelModel):
    timeout: int


class SuccessResponse(CamelModel):
    success: bool = True


def _parse_print_request(request: PrintRequest) -> tuple[bytes, PrintOptions]:
    data = _b64decode(request.data, "data")
    raw_options = dict(request.options or {})
    terminator = raw_options.get("responseTerminator", raw_options.get("response_terminator"))
    if isinstance(terminator, str):
        raw_options.pop("response_terminator", None)
        raw_options["responseTerminator"] = _b64decode(terminator, "responseTerminator")
    return data, PrintOptions.from_dict(raw_options)


# Endpoints


@router.get("/discovery/bluetooth")
async def discover_bluetooth() -> list[dict[str, Any]]:
    """List paired Bluetooth printers."""
    devices = await _service().discover_bluetooth_printers()
    return [device.to_dict() for device in devices]


@router.get("/discovery/usb")
async def discover_usb() -> list[dict[str, Any]]:
    """List attached USB printers with a serial number."""
    devices = await _service().discover_usb_printers()
    return [device.to_dict() for device in devices]


@router.get("/bluetooth/status", response_model=BluetoothStatus)
async def bluetooth_status() -> BluetoothStatus:
    return await _service().check_bluetooth_status()


@router.post("/connect", response_model=SuccessResponse)
async def connect(request: ConnectRequest) -> SuccessResponse:
    """Connect to a device, dispatching on its connection type."""
    await _service().session.connect(request.device, request.timeout)
    return SuccessResponse()


@router.post("/connect/bluetooth", response_model=SuccessResponse)
async def connect_bluetooth(request: BluetoothConnectRequest) -> SuccessResponse:
    await _service().session.connect_bluetooth(request.address, request.timeout)
    return SuccessResponse()


@router.post("/connect/tcp", response_model=SuccessResponse)
async def connect_tcp(request: TCPConnectRequest) -> SuccessResponse:
    await _service().session.connect_tcp(request.ip, request.port, request.timeout)
    return SuccessResponse()


@router.post("/connect/usb", response_model=SuccessResponse)
async def connect_usb(request: USBConnectRequest) -> SuccessResponse:
    await _service().session.connect_usb(request.serial_number, request.timeout)
    return SuccessResponse()


@router.post("/disconnect", response_model=SuccessResponse)
async def disconnect() -> SuccessResponse:
    await _service().session.disconnect()
    return SuccessResponse()


@router.get("/connection", response_model=ConnectionInfo)
async def connection() -> ConnectionInfo:
    """Report whether a printer is connected and which one."""
    session = _service().session
    device = session.get_current_device()
    return ConnectionInfo(
        connected=session.is_connected(),
        device=device.to_dict() if device else None,
    )


@router.post("/print/raw", response_model=PrintResponse)
async def print_raw(request: PrintRequest) -> PrintResponse:
    """Send raw printer-language bytes."""
    data, options = _parse_print_request(request)
    result = await _service().session.print_raw_data(data, options)
    return PrintResponse.from_result(result)


@router.post("/print/image", response_model=PrintResponse)
async def print_image(request: PrintRequest) -> PrintResponse:
    """Print an encoded image, converting it unless convertToSbpl is false."""
    data, options = _parse_print_request(request)
    result = await _service().session.print_image(data, options)
    return PrintResponse.from_result(result)


@router.get("/status")
async def printer_status() -> dict[str, Any]:
    status_info: PrinterStatus = _service().session.get_status()
    return status_info.to_dict()


@router.post("/read-timeout", response_model=SuccessResponse)
async def set_read_timeout(request: ReadTimeoutRequest) -> SuccessResponse:
    _service().session.set_read_timeout(request.timeout)
    return SuccessResponse()
