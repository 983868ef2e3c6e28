from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from .config import BAUD_RATES, DEFAULT_BAUD, POLL_INTERVAL_MS
from .connection import PortConfig, describe_ports
from .controller import SessionController
from .errors import SerialLoggerError
from .session import Direction, LogEntry, format_timestamp


logger = logging.getLogger(__name__)


def _list_ports() -> int:
    ports = describe_ports()
    if not ports:
        print("No serial ports found")
        return 0
    for device, desc in ports:
        print(f"{device}\t{desc}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="serial-logger", description="Line-oriented serial terminal with CSV session export")
    p.add_argument("--list", action="store_true", help="List available serial ports")
    p.add_argument("--gui", action="store_true", help="Launch the GUI (requires PySide6)")
    p.add_argument("--port", help="Serial port name, e.g. COM3")
    p.add_argument("--baud", type=int, choices=BAUD_RATES, default=DEFAULT_BAUD)
    p.add_argument("--timestamp", action="store_true", help="Prefix printed lines with their timestamp")
    p.add_argument("--export", metavar="PATH", help="Save the session as CSV on exit")
    p.add_argument("--escape-csv", action="store_true", help="Quote CSV fields that contain delimiters or newlines")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    return p


_HELP = """\
Interactive commands:
  :help
  :quit
  :ports
  :connect [port [baud]]
  :disconnect
  :clear
  :save <path>
  :count
Plain input (no leading ':') is sent as one line.
"""


@dataclass
class _Session:
    port: Optional[str]
    baud: int
    escape: bool
    polling: bool = True


def _print_entry(entry: LogEntry, timestamp: bool) -> None:
    if entry.direction is not Direction.RECEIVED:
        return
    prefix = format_timestamp(entry.timestamp) + " " if timestamp else ""
    print(f"{prefix}RX {entry.payload}", flush=True)


def _stdin_reader(lines: "queue.Queue[Optional[str]]") -> None:
    # Only stdin is touched here; the serial port stays on the main thread.
    try:
        for line in sys.stdin:
            lines.put(line.rstrip("\r\n"))
    except Exception:
        logger.exception("reading stdin failed")
    finally:
        lines.put(None)


def _run_command(ctrl: SessionController, cmdline: str, opts: _Session) -> bool:
    """Execute one ':' command. Returns False when the loop should stop."""
    parts = cmdline.split()
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]

    if cmd in ("q", "quit", "exit"):
        return False
    if cmd == "help":
        print(_HELP)
        return True
    if cmd == "ports":
        _list_ports()
        return True
    if cmd == "count":
        print(f"{len(ctrl.session)} entries")
        return True

    try:
        if cmd == "connect":
            port = args[0] if args else opts.port
            baud = int(args[1]) if len(args) > 1 else opts.baud
            ctrl.dispatch("connect", PortConfig(port or "", baud))
            opts.port, opts.baud = port, baud
            opts.polling = True
            print(f"Connected to {opts.port}")
        elif cmd == "disconnect":
            ctrl.dispatch("disconnect")
            print("Connection closed")
        elif cmd == "clear":
            ctrl.dispatch("clear")
        elif cmd == "save":
            path = " ".join(args).strip('"')
            if not path:
                print("[ERR] missing file path")
                return True
            count = ctrl.dispatch("save_csv", path, escape=opts.escape)
            print(f"Saved {count} entries to {path}")
        else:
            print("[ERR] unknown command. Type :help")
    except (SerialLoggerError, ValueError) as exc:
        print(f"[ERR] {exc}")
    return True


def _handle_line(ctrl: SessionController, line: str, opts: _Session) -> bool:
    if line.startswith(":"):
        return _run_command(ctrl, line[1:].strip(), opts)
    try:
        ctrl.dispatch("send", line)
    except SerialLoggerError as exc:
        print(f"[ERR] {exc}")
    return True


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.gui:
        from .gui import main as gui_main

        return gui_main()

    if args.list:
        return _list_ports()

    if not args.port:
        print("Missing --port. Use --list to see ports.")
        return 2

    opts = _Session(port=args.port, baud=args.baud, escape=args.escape_csv)
    ctrl = SessionController()
    ctrl.session.add_listener(lambda entry: _print_entry(entry, args.timestamp))

    try:
        ctrl.dispatch("connect", PortConfig(args.port, args.baud))
    except SerialLoggerError as exc:
        print(exc)
        return 1

    print("Connected. Type :help for commands. Type :quit to exit.")

    lines: "queue.Queue[Optional[str]]" = queue.Queue()
    threading.Thread(target=_stdin_reader, args=(lines,), name="stdin-reader", daemon=True).start()

    try:
        while True:
            try:
                line = lines.get(timeout=POLL_INTERVAL_MS / 1000)
            except queue.Empty:
                line = ""
            if line is None:
                break
            if line and not _handle_line(ctrl, line, opts):
                break
            if opts.polling and ctrl.connection.is_connected:
                try:
                    ctrl.dispatch("poll")
                except SerialLoggerError as exc:
                    print(f"[ERR] {exc}")
                    opts.polling = False
    except KeyboardInterrupt:
        pass
    finally:
        ctrl.shutdown()
        if args.export and len(ctrl.session):
            try:
                ctrl.dispatch("save_csv", args.export, escape=opts.escape)
            except SerialLoggerError as exc:
                print(f"[ERR] {exc}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
