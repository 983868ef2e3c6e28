from __future__ import annotations

import logging
from typing import Any, Optional

from .connection import (
    ConnectionManager,
    ConnectionState,
    PortConfig,
    SerialFactory,
    describe_ports,
)
from .session import LogEntry, PathLike, SessionLogger


logger = logging.getLogger(__name__)


class SessionController:
    """Application context shared by the GUI and the CLI.

    Front ends trigger user actions by name through :meth:`dispatch`; the
    ``ACTIONS`` table is the only mapping from action names to behaviour.
    """

    ACTIONS = {
        "refresh": "refresh_ports",
        "toggle": "toggle_connection",
        "connect": "connect",
        "disconnect": "disconnect",
        "send": "send",
        "poll": "poll",
        "clear": "clear",
        "save_csv": "export_csv",
    }

    def __init__(
        self,
        session: Optional[SessionLogger] = None,
        serial_factory: Optional[SerialFactory] = None,
    ) -> None:
        self.session = session if session is not None else SessionLogger()
        if serial_factory is None:
            self.connection = ConnectionManager(self.session)
        else:
            self.connection = ConnectionManager(self.session, serial_factory=serial_factory)

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def dispatch(self, action: str, *args: Any, **kwargs: Any) -> Any:
        try:
            name = self.ACTIONS[action]
        except KeyError:
            raise ValueError(f"unknown action: {action!r}") from None
        return getattr(self, name)(*args, **kwargs)

    def refresh_ports(self) -> list[tuple[str, str]]:
        return describe_ports()

    def connect(self, config: PortConfig) -> ConnectionState:
        self.connection.connect(config)
        return self.connection.state

    def disconnect(self) -> ConnectionState:
        self.connection.disconnect()
        return self.connection.state

    def toggle_connection(self, config: Optional[PortConfig] = None) -> ConnectionState:
        if self.connection.is_connected:
            return self.disconnect()
        if config is None:
            raise ValueError("No port selected")
        return self.connect(config)

    def send(self, line: str) -> LogEntry:
        return self.connection.send(line)

    def poll(self) -> list[str]:
        return list(self.connection.poll_incoming())

    def clear(self) -> None:
        self.session.clear()

    def export_csv(self, path: PathLike, escape: bool = False) -> int:
        self.session.export_csv(path, escape=escape)
        return len(self.session)

    def shutdown(self) -> None:
        if self.connection.is_connected:
            logger.info("closing port before exit")
        self.connection.close()
