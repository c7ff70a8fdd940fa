"""Pytest configuration and fixtures."""

import asyncio
import io

import pytest
from PIL import Image

from labelwire.config import Settings
from labelwire.models.printer import ConnectionType, PrinterDevice
from labelwire.transports.base import BaseTransport


class FakeTransport(BaseTransport):
    """In-memory transport that records writes and replays queued responses."""

    def __init__(self, device: PrinterDevice, read_timeout_ms: int = 10000):
        super().__init__(read_timeout_ms)
        self.device = device
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0
        self.fail_connect: Exception | None = None
        self.fail_send: Exception | None = None
        self.sent: list[bytes] = []
        self.responses: list[bytes] = []

    @property
    def description(self) -> str:
        return f"fake {self.device.address}"

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self, timeout_ms: int) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise self.fail_connect
        self.connected = True

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False

    async def _send(self, data: bytes, timeout: float) -> None:
        if self.fail_send:
            raise self.fail_send
        self.sent.append(data)

    async def _recv(self, size: int, timeout: float) -> bytes:
        if not self.responses:
            # Nothing queued: block until the caller's timeout fires
            await asyncio.sleep(timeout + 1)
            return b""
        chunk = self.responses.pop(0)
        if len(chunk) > size:
            self.responses.insert(0, chunk[size:])
            chunk = chunk[:size]
        return chunk


class FakeTransportFactory:
    """Transport factory for PrinterSession that keeps every transport it built."""

    def __init__(self):
        self.created: list[FakeTransport] = []
        self.fail_connect: Exception | None = None

    def __call__(self, device: PrinterDevice, settings: Settings) -> FakeTransport:
        transport = FakeTransport(device, settings.read_timeout_ms)
        transport.fail_connect = self.fail_connect
        self.created.append(transport)
        return transport

    @property
    def live(self) -> list[FakeTransport]:
        return [t for t in self.created if t.connected]


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(_env_file=None, connect_timeout_ms=500, read_timeout_ms=500)


@pytest.fixture
def factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def tcp_device() -> PrinterDevice:
    return PrinterDevice(name="Desk printer", address="192.168.1.50:9100", connection_type=ConnectionType.TCP)


@pytest.fixture
def bluetooth_device() -> PrinterDevice:
    return PrinterDevice(name="CT4-LX", address="00:11:22:AA:BB:CC", connection_type=ConnectionType.BLUETOOTH)


def make_png(width: int, height: int, color: tuple[int, int, int] = (255, 255, 255)) -> bytes:
    """Encode a solid colour image as PNG bytes."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()
