"""Tests for the printer connection session."""

import asyncio
import errno

import pytest

from conftest import make_png
from labelwire.errors import (
    BluetoothDisabledError,
    ConnectionFailedError,
    InvalidArgumentError,
    NotConnectedError,
    PermissionDeniedError,
    PrinterError,
)
from labelwire.models.job import ImageEncoding, PrintOptions
from labelwire.models.printer import ConnectionType, PrinterDevice
from labelwire.session import PrinterSession


@pytest.fixture
def session(settings, factory) -> PrinterSession:
    return PrinterSession(settings, transport_factory=factory)


class TestConnect:
    """Tests for connect and disconnect."""

    @pytest.mark.asyncio
    async def test_connect(self, session, factory, tcp_device):
        assert await session.connect(tcp_device) is True
        assert session.is_connected()
        assert session.get_current_device() == tcp_device
        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_connect_disconnect_connect_leaves_one_transport(self, session, factory, tcp_device):
        """Only the newest transport stays open."""
        await session.connect(tcp_device)
        await session.disconnect()
        await session.connect(tcp_device)

        assert len(factory.created) == 2
        assert factory.live == [factory.created[1]]
        assert factory.created[0].close_calls >= 1

    @pytest.mark.asyncio
    async def test_connect_replaces_current(self, session, factory, tcp_device, bluetooth_device):
        """Connecting while connected closes the old transport first."""
        await session.connect(tcp_device)
        await session.connect(bluetooth_device)

        assert factory.live == [factory.created[1]]
        assert session.get_current_device() == bluetooth_device

    @pytest.mark.asyncio
    async def test_failed_connect_clears_state(self, session, factory, tcp_device, bluetooth_device):
        """A failed connect leaves no device and no transport."""
        await session.connect(tcp_device)
        factory.fail_connect = BluetoothDisabledError("Adapter is off")

        with pytest.raises(BluetoothDisabledError):
            await session.connect(bluetooth_device)

        assert not session.is_connected()
        assert session.get_current_device() is None
        assert session.transport is None
        assert factory.live == []

    @pytest.mark.asyncio
    async def test_unclassified_connect_error(self, session, factory, tcp_device):
        """Unexpected failures are reported as connection failures."""
        factory.fail_connect = RuntimeError("driver exploded")
        with pytest.raises(ConnectionFailedError):
            await session.connect(tcp_device)

    @pytest.mark.asyncio
    async def test_invalid_timeout(self, session, tcp_device):
        with pytest.raises(InvalidArgumentError):
            await session.connect(tcp_device, timeout_ms=-5)

    @pytest.mark.asyncio
    async def test_disconnect_when_not_connected(self, session):
        assert await session.disconnect() is True
        assert session.get_current_device() is None

    @pytest.mark.asyncio
    async def test_disconnect_clears_device(self, session, tcp_device):
        await session.connect(tcp_device)
        await session.disconnect()
        assert not session.is_connected()
        assert session.get_current_device() is None

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, settings, factory, tcp_device):
        async with PrinterSession(settings, transport_factory=factory) as session:
            await session.connect(tcp_device)
        assert factory.live == []


class TestConnectHelpers:
    """Tests for connect_bluetooth, connect_tcp and connect_usb."""

    @pytest.mark.asyncio
    async def test_connect_tcp(self, session):
        await session.connect_tcp("192.168.1.20", 6101)
        device = session.get_current_device()
        assert device.address == "192.168.1.20:6101"
        assert device.connection_type == ConnectionType.TCP

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ip,port", [("", 9100), ("10.0.0.1", 0), ("10.0.0.1", 65536)])
    async def test_connect_tcp_invalid(self, session, ip, port):
        with pytest.raises(InvalidArgumentError):
            await session.connect_tcp(ip, port)

    @pytest.mark.asyncio
    async def test_connect_bluetooth(self, session):
        await session.connect_bluetooth("00:11:22:33:44:55", timeout_ms=2000)
        device = session.get_current_device()
        assert device.connection_type == ConnectionType.BLUETOOTH

    @pytest.mark.asyncio
    async def test_connect_bluetooth_empty_address(self, session):
        with pytest.raises(InvalidArgumentError):
            await session.connect_bluetooth("")

    @pytest.mark.asyncio
    async def test_connect_usb(self, session):
        await session.connect_usb("SN123")
        device = session.get_current_device()
        assert device.connection_type == ConnectionType.USB
        assert device.serial_number == "SN123"


class TestSendRawData:
    """Tests for send_raw_data and print_raw_data."""

    @pytest.mark.asyncio
    async def test_not_connected(self, session):
        with pytest.raises(NotConnectedError):
            await session.send_raw_data(b"data")

    @pytest.mark.asyncio
    async def test_send(self, session, factory, tcp_device):
        await session.connect(tcp_device)

        result = await session.send_raw_data(b"^XA^XZ")

        assert result.success is True
        assert result.message == "Data sent successfully"
        assert result.response_data is None
        assert factory.created[0].sent == [b"^XA^XZ"]

    @pytest.mark.asyncio
    async def test_response_bytes(self, session, factory, tcp_device):
        """With expect_response and a count of 4, exactly 4 bytes come back."""
        await session.connect(tcp_device)
        factory.created[0].responses = [b"\x06\x01\x02\x03\x04"]

        options = PrintOptions(expect_response=True, response_byte_count=4)
        result = await session.send_raw_data(b"\x05", options)

        assert result.success is True
        assert result.response_data == b"\x06\x01\x02\x03"

    @pytest.mark.asyncio
    async def test_response_not_read_unless_expected(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        factory.created[0].responses = [b"\x06"]

        result = await session.send_raw_data(b"\x05", PrintOptions(response_byte_count=1))

        assert result.response_data is None
        assert factory.created[0].responses == [b"\x06"]

    @pytest.mark.asyncio
    async def test_read_timeout_is_soft_failure(self, session, tcp_device):
        """A silent printer yields a failed result, not an exception."""
        await session.connect(tcp_device)

        options = PrintOptions(expect_response=True, response_byte_count=4, timeout=50)
        result = await session.send_raw_data(b"\x05", options)

        assert result.success is False
        assert result.message.startswith("Read timeout: ")
        assert session.is_connected()

    @pytest.mark.asyncio
    async def test_io_error_is_soft_failure(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        factory.created[0].fail_send = BrokenPipeError(errno.EPIPE, "Broken pipe")

        result = await session.send_raw_data(b"data")

        assert result.success is False
        assert result.message.startswith("IO error: ")

    @pytest.mark.asyncio
    async def test_printer_error_is_soft_failure(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        transport = factory.created[0]

        async def printer_fault(*args, **kwargs):
            raise PrinterError("Head open")

        transport.write = printer_fault
        result = await session.send_raw_data(b"data")

        assert result.success is False
        assert result.message == "Printer error: Head open"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_soft_failure(self, session, factory, tcp_device):
        await session.connect(tcp_device)

        async def crash(*args, **kwargs):
            raise RuntimeError("bug")

        factory.created[0].write = crash
        result = await session.send_raw_data(b"data")

        assert result.success is False
        assert result.message == "Unexpected error: bug"

    @pytest.mark.asyncio
    async def test_permission_error_propagates(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        factory.created[0].fail_send = PermissionError(errno.EACCES, "Access denied")

        with pytest.raises(PermissionDeniedError):
            await session.send_raw_data(b"data")

    @pytest.mark.asyncio
    async def test_single_reconnect_on_dropped_connection(self, session, factory, tcp_device):
        """A dropped link is reconnected once before sending."""
        await session.connect(tcp_device)
        transport = factory.created[0]
        transport.connected = False

        result = await session.send_raw_data(b"data")

        assert result.success is True
        assert transport.connect_calls == 2
        assert transport.sent == [b"data"]

    @pytest.mark.asyncio
    async def test_failed_reconnect(self, session, factory, tcp_device):
        """When the one reconnect attempt fails the caller gets NotConnectedError."""
        await session.connect(tcp_device)
        transport = factory.created[0]
        transport.connected = False
        transport.fail_connect = ConnectionFailedError("gone")

        with pytest.raises(NotConnectedError):
            await session.send_raw_data(b"data")

        assert transport.connect_calls == 2
        assert transport.sent == []
        # The device record is kept so a later write retries
        assert session.get_current_device() == tcp_device

    @pytest.mark.asyncio
    async def test_print_raw_copies(self, session, factory, tcp_device):
        await session.connect(tcp_device)

        result = await session.print_raw_data(b"LABEL", PrintOptions(copies=3))

        assert result.success is True
        assert factory.created[0].sent == [b"LABEL"] * 3

    @pytest.mark.asyncio
    async def test_print_raw_stops_at_first_failure(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        transport = factory.created[0]
        calls = 0
        original_send = transport._send

        async def fail_second(data, timeout):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise ConnectionResetError(errno.ECONNRESET, "reset")
            await original_send(data, timeout)

        transport._send = fail_second
        result = await session.print_raw_data(b"LABEL", PrintOptions(copies=3))

        assert result.success is False
        assert calls == 2
        assert transport.sent == [b"LABEL"]

    @pytest.mark.asyncio
    async def test_concurrent_writes_do_not_interleave(self, session, factory, tcp_device):
        """Each write finishes its response read before the next write starts."""
        await session.connect(tcp_device)
        transport = factory.created[0]
        transport.responses = [b"A", b"B"]

        options = PrintOptions(expect_response=True, response_byte_count=1)
        first, second = await asyncio.gather(
            session.send_raw_data(b"1", options),
            session.send_raw_data(b"2", options),
        )

        assert transport.sent == [b"1", b"2"]
        assert first.response_data == b"A"
        assert second.response_data == b"B"


class TestPrintImage:
    """Tests for print_image."""

    @pytest.mark.asyncio
    async def test_sbpl(self, session, factory, tcp_device):
        await session.connect(tcp_device)

        result = await session.print_image(make_png(8, 1, (0, 0, 0)), PrintOptions(copies=2, x_position=3))

        assert result.success is True
        assert factory.created[0].sent == [b"\x02H0003V0000GH001001\xffQ2\x03"]

    @pytest.mark.asyncio
    async def test_zpl(self, session, factory, tcp_device):
        await session.connect(tcp_device)

        options = PrintOptions(image_encoding=ImageEncoding.ZPL)
        result = await session.print_image(make_png(16, 2), options)

        assert result.success is True
        assert factory.created[0].sent == [b"^XA^FO0,0^GFA,4,4,2,,:^FS^XZ"]

    @pytest.mark.asyncio
    async def test_passthrough(self, session, factory, tcp_device):
        """With conversion off the image bytes are sent as they are, once per copy."""
        await session.connect(tcp_device)
        image = make_png(8, 8)

        await session.print_image(image, PrintOptions(convert_to_sbpl=False, copies=2))

        assert factory.created[0].sent == [image, image]

    @pytest.mark.asyncio
    async def test_not_connected(self, session):
        with pytest.raises(NotConnectedError):
            await session.print_image(make_png(8, 1))

    @pytest.mark.asyncio
    async def test_invalid_image(self, session, tcp_device):
        await session.connect(tcp_device)
        with pytest.raises(InvalidArgumentError):
            await session.print_image(b"definitely not a png")


class TestStatusAndTimeout:
    """Tests for get_status and set_read_timeout."""

    def test_status_not_connected(self, session):
        status = session.get_status()
        assert status.is_connected is False
        assert status.is_online is False
        assert status.is_ready is False

    @pytest.mark.asyncio
    async def test_status_connected(self, session, tcp_device):
        await session.connect(tcp_device)
        status = session.get_status()
        assert status.is_connected is True
        assert status.is_online is True
        assert status.is_paper_out is False
        assert status.is_ready is True

    @pytest.mark.asyncio
    async def test_set_read_timeout(self, session, factory, tcp_device):
        await session.connect(tcp_device)
        assert session.set_read_timeout(2500) is True
        assert factory.created[0].read_timeout_ms == 2500

    def test_set_read_timeout_without_connection(self, session):
        assert session.set_read_timeout(2500) is True

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_set_read_timeout_invalid(self, session, timeout):
        with pytest.raises(InvalidArgumentError):
            session.set_read_timeout(timeout)


class TestDeviceEquality:
    @pytest.mark.asyncio
    async def test_current_device_matches_by_address(self, session):
        await session.connect_tcp("10.0.0.9", 9100)
        same = PrinterDevice(name="Other name", address="10.0.0.9:9100", connection_type=ConnectionType.TCP)
        assert session.get_current_device() == same
