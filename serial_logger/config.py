from __future__ import annotations


BAUD_RATES = (9600, 19200, 38400, 57600, 115200)
DEFAULT_BAUD = 115200

ENCODING = "utf-8"
LINE_TERMINATOR = "\n"
READ_TIMEOUT = 0  # non-blocking reads, the caller polls
WRITE_TIMEOUT = 1.0

CSV_DELIMITER = ","
CSV_HEADER = ("Timestamp", "Type", "Data")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

POLL_INTERVAL_MS = 20

SETTINGS_ORG = "SerialLogger"
SETTINGS_APP = "SerialLogger"
