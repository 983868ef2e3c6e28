from __future__ import annotations

import csv
import enum
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Union

from .config import CSV_DELIMITER, CSV_HEADER, TIMESTAMP_FORMAT
from .errors import EmptyLog, ExportWriteFailed


logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class Direction(enum.Enum):
    SENT = "Sent"
    RECEIVED = "Received"


def format_timestamp(ts: datetime) -> str:
    return ts.strftime(TIMESTAMP_FORMAT) + f".{ts.microsecond // 1000:03d}"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    direction: Direction
    payload: str

    def fields(self) -> tuple[str, str, str]:
        return format_timestamp(self.timestamp), self.direction.value, self.payload


Listener = Callable[[LogEntry], None]


class SessionLogger:
    """In-memory record of everything sent and received during a session.

    Entries are kept in insertion order, which is also chronological order.
    Listeners are called synchronously with every new entry, in record order.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._entries: list[LogEntry] = []
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def add_listener(self, callback: Listener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def record(self, direction: Direction, payload: str) -> LogEntry:
        entry = LogEntry(timestamp=self._clock(), direction=direction, payload=payload)
        self._entries.append(entry)
        logger.debug("%s %r", direction.value, payload)
        for callback in list(self._listeners):
            callback(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def export_csv(self, path: PathLike, escape: bool = False) -> None:
        """Write the session to ``path`` as ``Timestamp,Type,Data`` rows.

        Without ``escape`` the fields are joined as-is, so a payload holding the
        delimiter or a newline produces a malformed row. With ``escape`` the
        rows go through :mod:`csv` and such payloads are quoted.
        """
        if not self._entries:
            raise EmptyLog()

        entries = tuple(self._entries)
        try:
            with open(path, "w", encoding="utf-8", newline="") as fp:
                if escape:
                    writer = csv.writer(fp, delimiter=CSV_DELIMITER, lineterminator="\n")
                    writer.writerow(CSV_HEADER)
                    writer.writerows(entry.fields() for entry in entries)
                else:
                    fp.write(CSV_DELIMITER.join(CSV_HEADER) + "\n")
                    for entry in entries:
                        fp.write(CSV_DELIMITER.join(entry.fields()) + "\n")
        except OSError as exc:
            logger.warning("export to %s failed: %s", path, exc)
            raise ExportWriteFailed(os.fspath(path), exc.strerror or str(exc)) from exc

        logger.info("exported %d entries to %s", len(entries), path)
