from __future__ import annotations


class SerialLoggerError(Exception):
    pass


class ConnectError(SerialLoggerError):
    pass


class AlreadyOpen(ConnectError):
    def __init__(self, port: str = "") -> None:
        super().__init__(f"Already connected to {port}" if port else "Already connected")


class NotOpen(ConnectError):
    def __init__(self) -> None:
        super().__init__("No connection to close")


class DeviceUnavailable(ConnectError):
    def __init__(self, port: str, reason: str) -> None:
        super().__init__(f"Failed to open {port}: {reason}")
        self.port = port
        self.reason = reason


class ReadFailed(SerialLoggerError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Read failed: {reason}")
        self.reason = reason


class SendError(SerialLoggerError):
    pass


class NotConnected(SendError):
    def __init__(self) -> None:
        super().__init__("Not connected to any device!")


class WriteFailed(SendError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to send data: {reason}")
        self.reason = reason


class ExportError(SerialLoggerError):
    pass


class EmptyLog(ExportError):
    def __init__(self) -> None:
        super().__init__("No data to save!")


class ExportWriteFailed(ExportError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to save {path}: {reason}")
        self.path = path
        self.reason = reason
