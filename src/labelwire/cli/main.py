"""Command line interface for Labelwire."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import uvicorn

from labelwire.config import load_config, settings
from labelwire.errors import InvalidArgumentError, map_exception
from labelwire.models.job import ImageEncoding, PrintOptions
from labelwire.models.printer import ConnectionType, PrinterDevice
from labelwire.service import PrinterService

logger = logging.getLogger(__name__)


def _setup_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _hex_bytes(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a hex string: {value}") from e


def _read_source(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _resolve_device(args: argparse.Namespace) -> PrinterDevice:
    """Pick the target printer from --tcp/--bluetooth/--usb/--printer or the config default."""
    if args.tcp:
        return PrinterDevice.from_dict({"address": args.tcp, "connectionType": ConnectionType.TCP})
    if args.bluetooth:
        return PrinterDevice.from_dict({"address": args.bluetooth, "connectionType": ConnectionType.BLUETOOTH})
    if args.usb:
        return PrinterDevice.from_dict(
            {"address": args.usb, "connectionType": ConnectionType.USB, "serialNumber": args.usb}
        )

    config = load_config(args.config)
    device = config.get_printer(args.printer)
    if device is None:
        if args.printer:
            raise InvalidArgumentError(f"Printer '{args.printer}' not found in {args.config}")
        raise InvalidArgumentError("No printer given; use --tcp, --bluetooth, --usb or --printer")
    return device


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


async def _discover(service: PrinterService, args: argparse.Namespace) -> int:
    if args.kind == "bluetooth":
        devices = await service.discover_bluetooth_printers()
    else:
        devices = await service.discover_usb_printers()

    if args.json:
        _print_json([device.to_dict() for device in devices])
        return 0

    if not devices:
        print(f"No {args.kind} printers found")
    for device in devices:
        print(f"{device.address}\t{device.name or ''}")
    return 0


async def _bt_status(service: PrinterService, args: argparse.Namespace) -> int:
    status = await service.check_bluetooth_status()
    print(f"available: {status.available}")
    print(f"enabled: {status.enabled}")
    return 0 if status.available and status.enabled else 1


async def _status(service: PrinterService, args: argparse.Namespace) -> int:
    await service.session.connect(_resolve_device(args), args.connect_timeout)
    _print_json(service.session.get_status().to_dict())
    return 0


async def _send(service: PrinterService, args: argparse.Namespace) -> int:
    data = _read_source(args.source)
    options = PrintOptions.from_dict(
        {
            "copies": args.copies,
            "timeout": args.timeout,
            "expect_response": args.response_bytes is not None or args.terminator is not None,
            "response_byte_count": args.response_bytes if args.response_bytes is not None else -1,
            "response_terminator": args.terminator,
        }
    )

    await service.session.connect(_resolve_device(args), args.connect_timeout)
    result = await service.session.print_raw_data(data, options)
    return _report(result)


async def _print_image(service: PrinterService, args: argparse.Namespace) -> int:
    image_bytes = Path(args.image).read_bytes()
    options = PrintOptions.from_dict(
        {
            "copies": args.copies,
            "timeout": args.timeout,
            "x_position": args.x,
            "y_position": args.y,
            "convert_to_sbpl": not args.raw,
            "image_encoding": args.encoding,
            "compress_hex": not args.no_compress,
            "threshold": args.threshold,
            "blackness_percentage": args.blackness,
        }
    )

    await service.session.connect(_resolve_device(args), args.connect_timeout)
    result = await service.session.print_image(image_bytes, options)
    return _report(result)


def _report(result) -> int:
    if result.success:
        print(result.message)
        if result.response_data is not None:
            print(f"Response ({len(result.response_data)} bytes): {result.response_data.hex(' ')}")
        return 0
    print(f"Failed: {result.message}", file=sys.stderr)
    return 1


async def _run(handler, args: argparse.Namespace) -> int:
    async with PrinterService(settings) as service:
        return await handler(service, args)


def _add_device_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--tcp", metavar="HOST[:PORT]", help="Network printer address")
    group.add_argument("--bluetooth", metavar="MAC", help="Paired Bluetooth printer address")
    group.add_argument("--usb", metavar="SERIAL", help="USB printer serial number")
    group.add_argument("--printer", metavar="NAME", help="Printer name from the config file")
    parser.add_argument(
        "--connect-timeout",
        type=int,
        default=settings.connect_timeout_ms,
        metavar="MS",
        help=f"Connect timeout in milliseconds (default: {settings.connect_timeout_ms})",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=settings.read_timeout_ms,
        metavar="MS",
        help=f"Write and read timeout in milliseconds (default: {settings.read_timeout_ms})",
    )
    parser.add_argument("--copies", type=int, default=1, help="Number of copies (default: 1)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Talk to label printers over Bluetooth, TCP and USB.",
        prog="labelwire",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.debug,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=settings.config_file,
        help=f"Config file with named printers (default: {settings.config_file})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="List printers")
    discover.add_argument("kind", choices=["bluetooth", "usb"])
    discover.add_argument("--json", action="store_true", help="Output JSON")
    discover.set_defaults(handler=_discover)

    bt_status = subparsers.add_parser("bt-status", help="Show Bluetooth adapter status")
    bt_status.set_defaults(handler=_bt_status)

    status = subparsers.add_parser("status", help="Connect and report printer status")
    _add_device_arguments(status)
    status.set_defaults(handler=_status)

    send = subparsers.add_parser("send", help="Send raw printer commands")
    send.add_argument("source", help="File with printer commands, or - for stdin")
    _add_device_arguments(send)
    send.add_argument("--response-bytes", type=int, metavar="N", help="Read exactly N response bytes (-1: until EOF)")
    send.add_argument("--terminator", type=_hex_bytes, metavar="HEX", help="Read response up to this byte sequence")
    send.set_defaults(handler=_send)

    print_image = subparsers.add_parser("print-image", help="Convert and print an image")
    print_image.add_argument("image", help="Image file (PNG, JPEG, BMP, ...)")
    _add_device_arguments(print_image)
    print_image.add_argument(
        "--encoding",
        choices=[e.value for e in ImageEncoding],
        default=ImageEncoding.SBPL.value,
        help="Printer language for the image (default: sbpl)",
    )
    print_image.add_argument("-x", type=int, default=0, help="Horizontal position in dots")
    print_image.add_argument("-y", type=int, default=0, help="Vertical position in dots")
    print_image.add_argument("--threshold", type=int, default=128, help="Luma cutoff for ink (default: 128)")
    print_image.add_argument("--blackness", type=int, metavar="PERCENT", help="Use a channel-sum cutoff instead")
    print_image.add_argument("--no-compress", action="store_true", help="Send ZPL hex uncompressed")
    print_image.add_argument("--raw", action="store_true", help="Send the image file unconverted")
    print_image.set_defaults(handler=_print_image)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    return parser


def serve(host: str, port: int, debug: bool) -> None:
    """Run the Labelwire API server."""
    uvicorn.run("labelwire.app:app", host=host, port=port, reload=debug)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the labelwire CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.debug)

    if args.command == "serve":
        serve(args.host, args.port, args.debug)
        return 0

    try:
        return asyncio.run(_run(args.handler, args))
    except Exception as e:
        kind, message = map_exception(e)
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error [{kind}]: {message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
