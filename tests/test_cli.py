import io
import queue
import sys

import pytest
import serial

from serial_logger import cli
from serial_logger.connection import ConnectionState, PortConfig
from serial_logger.controller import SessionController


@pytest.fixture
def opts():
    return cli._Session(port="COM3", baud=115200, escape=False)


def test_parser_defaults():
    args = cli._build_parser().parse_args(["--port", "COM3"])
    assert args.baud == 115200
    assert not args.escape_csv


def test_parser_rejects_unsupported_baud():
    with pytest.raises(SystemExit):
        cli._build_parser().parse_args(["--port", "COM3", "--baud", "230400"])


def test_missing_port_exits_with_2(capsys):
    assert cli.main([]) == 2
    assert "Missing --port" in capsys.readouterr().out


def test_plain_line_is_sent(controller, ports, opts):
    controller.dispatch("connect", PortConfig("COM3"))
    assert cli._handle_line(controller, "hello", opts)
    assert bytes(ports.last.written) == b"hello\n"


def test_send_error_is_printed(controller, opts, capsys):
    assert cli._handle_line(controller, "hello", opts)
    assert "[ERR] Not connected" in capsys.readouterr().out


def test_quit_stops_loop(controller, opts):
    assert not cli._handle_line(controller, ":quit", opts)


def test_connect_and_disconnect_commands(controller, ports, opts):
    cli._handle_line(controller, ":connect COM5 9600", opts)
    assert controller.state is ConnectionState.CONNECTED
    assert (ports.last.port, ports.last.baudrate) == ("COM5", 9600)
    cli._handle_line(controller, ":disconnect", opts)
    assert controller.state is ConnectionState.DISCONNECTED


def test_connect_with_bad_baud_reports_error(controller, opts, capsys):
    cli._handle_line(controller, ":connect COM5 1234", opts)
    assert controller.state is ConnectionState.DISCONNECTED
    assert "[ERR] Unsupported baud rate" in capsys.readouterr().out


def test_save_command_exports(controller, opts, tmp_path):
    controller.dispatch("connect", PortConfig("COM3"))
    controller.dispatch("send", "a,b")
    path = tmp_path / "log.csv"
    opts.escape = True
    cli._handle_line(controller, f":save {path}", opts)
    assert path.read_text(encoding="utf-8").splitlines()[1].endswith(',Sent,"a,b"')


def test_save_empty_log_reports_error(controller, opts, tmp_path, capsys):
    path = tmp_path / "log.csv"
    cli._handle_line(controller, f":save {path}", opts)
    assert "[ERR] No data to save!" in capsys.readouterr().out
    assert not path.exists()


def test_clear_command(controller, opts):
    controller.dispatch("connect", PortConfig("COM3"))
    controller.dispatch("send", "x")
    cli._handle_line(controller, ":clear", opts)
    assert len(controller.session) == 0


def test_print_entry_only_shows_received(session, capsys):
    from serial_logger.session import Direction

    cli._print_entry(session.record(Direction.SENT, "out"), timestamp=False)
    cli._print_entry(session.record(Direction.RECEIVED, "in"), timestamp=True)
    assert capsys.readouterr().out == "2024-05-01 12:30:00.375 RX in\n"


def test_bad_connect_keeps_previous_settings(controller, ports, opts):
    cli._handle_line(controller, ":connect COM9 1234", opts)
    assert (opts.port, opts.baud) == ("COM3", 115200)
    cli._handle_line(controller, ":connect", opts)
    assert (ports.last.port, ports.last.baudrate) == ("COM3", 115200)


def test_unencodable_input_does_not_end_session(controller, ports, opts, capsys):
    controller.dispatch("connect", PortConfig("COM3"))
    assert cli._handle_line(controller, "ok\udcff", opts)
    assert bytes(ports.last.written) == b"ok?\n"
    assert "[ERR]" not in capsys.readouterr().out


def test_stdin_reader_ends_input_after_decode_error(monkeypatch):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"\xff\n:quit\n"), encoding="utf-8"))
    lines = queue.Queue()
    cli._stdin_reader(lines)
    assert lines.get_nowait() is None


def test_stdin_reader_queues_lines_then_end(monkeypatch):
    monkeypatch.setattr(sys, "stdin", io.StringIO("PING\r\n:quit\n"))
    lines = queue.Queue()
    cli._stdin_reader(lines)
    assert [lines.get_nowait() for _ in range(3)] == ["PING", ":quit", None]


@pytest.fixture
def run_main(session, ports, monkeypatch):
    monkeypatch.setattr(cli, "SessionController", lambda: SessionController(session=session, serial_factory=ports))

    def run(stdin_text, *argv):
        monkeypatch.setattr(sys, "stdin", io.StringIO(stdin_text))
        return cli.main(["--port", "COM3", *argv])

    return run


def test_main_sends_exports_and_closes_port(run_main, ports, tmp_path):
    path = tmp_path / "session.csv"
    assert run_main("PING\n:quit\n", "--export", str(path)) == 0
    assert bytes(ports.last.written) == b"PING\n"
    assert not ports.last.is_open
    assert path.read_text(encoding="utf-8") == "Timestamp,Type,Data\n2024-05-01 12:30:00.250,Sent,PING\n"


def test_main_skips_export_of_empty_log(run_main, ports, tmp_path):
    path = tmp_path / "session.csv"
    assert run_main(":quit\n", "--export", str(path)) == 0
    assert not path.exists()
    assert not ports.last.is_open


def test_main_stops_polling_after_read_error(run_main, ports, capsys):
    ports.read_error = serial.SerialException("device disconnected")
    assert run_main("PING\n:count\n:quit\n") == 0
    out = capsys.readouterr().out
    assert out.count("[ERR] Read failed") == 1
    assert "1 entries" in out
    assert not ports.last.is_open


def test_main_reports_unavailable_port(run_main, ports, capsys):
    ports.missing.add("COM3")
    assert run_main(":quit\n") == 1
    assert "Failed to open COM3" in capsys.readouterr().out
