from __future__ import annotations

import logging
import sys

from .config import BAUD_RATES, DEFAULT_BAUD, POLL_INTERVAL_MS, SETTINGS_APP, SETTINGS_ORG
from .connection import ConnectionState, PortConfig
from .controller import SessionController
from .errors import EmptyLog, NotConnected, SerialLoggerError
from .session import Direction, LogEntry, format_timestamp


logger = logging.getLogger(__name__)

_VIEW_PREFIX = {Direction.SENT: "SENT", Direction.RECEIVED: "RECV"}

_INDICATOR_ON = "background-color: #00ff00; border-radius: 10px; border: 2px solid #00ff00;"
_INDICATOR_OFF = "background-color: red; border-radius: 10px; border: 2px solid #2a2a4a;"


def _view_line(entry: LogEntry) -> str:
    return f"[{format_timestamp(entry.timestamp)}] {_VIEW_PREFIX[entry.direction]}: {entry.payload}"


def _indicator_style(state: ConnectionState) -> str:
    return _INDICATOR_ON if state is ConnectionState.CONNECTED else _INDICATOR_OFF


def _parse_baud(text: str) -> int:
    """Baud rate from the combo box text, falling back to the default."""
    try:
        baud = int(str(text).strip())
    except ValueError:
        return DEFAULT_BAUD
    return baud if baud in BAUD_RATES else DEFAULT_BAUD


def _is_warning(exc: SerialLoggerError) -> bool:
    # Guard-style refusals are warnings; device and file failures are errors.
    return isinstance(exc, (NotConnected, EmptyLog))


def main() -> int:
    try:
        from PySide6 import QtCore, QtWidgets
    except Exception:
        print("PySide6 is not installed. Install with: pip install 'serial-logger[gui]'")
        return 2

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    class MainWindow(QtWidgets.QMainWindow):
        def __init__(self) -> None:
            super().__init__()
            self.setWindowTitle("Serial Logger")
            self.setMinimumWidth(480)

            self.ctrl = SessionController()

            central = QtWidgets.QWidget(self)
            self.setCentralWidget(central)

            self.port_cb = QtWidgets.QComboBox()
            self.refresh_btn = QtWidgets.QPushButton("Refresh")
            self.baud_cb = QtWidgets.QComboBox()
            self.baud_cb.addItems([str(b) for b in BAUD_RATES])
            self.baud_cb.setCurrentText(str(DEFAULT_BAUD))

            self.connect_btn = QtWidgets.QPushButton("Connect")
            self.indicator = QtWidgets.QLabel()
            self.indicator.setFixedSize(20, 20)

            self.rx_view = QtWidgets.QPlainTextEdit()
            self.rx_view.setReadOnly(True)

            self.tx_edit = QtWidgets.QLineEdit()
            self.tx_edit.setPlaceholderText("Enter a line and press Enter...")
            self.send_btn = QtWidgets.QPushButton("Send")
            self.clear_btn = QtWidgets.QPushButton("Clear")
            self.save_btn = QtWidgets.QPushButton("Save CSV")
            self.escape_ck = QtWidgets.QCheckBox("Quote CSV fields")

            for btn in (self.refresh_btn, self.connect_btn, self.send_btn, self.clear_btn, self.save_btn):
                btn.setCursor(QtCore.Qt.CursorShape.PointingHandCursor)

            port_row = QtWidgets.QHBoxLayout()
            port_row.addWidget(QtWidgets.QLabel("Port"))
            port_row.addWidget(self.port_cb, 1)
            port_row.addWidget(self.refresh_btn)
            port_row.addWidget(QtWidgets.QLabel("Baud"))
            port_row.addWidget(self.baud_cb)
            port_row.addWidget(self.connect_btn)
            port_row.addWidget(self.indicator)

            tx_row = QtWidgets.QHBoxLayout()
            tx_row.addWidget(self.tx_edit, 1)
            tx_row.addWidget(self.send_btn)

            tools_row = QtWidgets.QHBoxLayout()
            tools_row.addWidget(self.clear_btn)
            tools_row.addStretch(1)
            tools_row.addWidget(self.escape_ck)
            tools_row.addWidget(self.save_btn)

            layout = QtWidgets.QVBoxLayout(central)
            layout.setContentsMargins(6, 6, 6, 6)
            layout.setSpacing(6)
            layout.addLayout(port_row)
            layout.addWidget(self.rx_view, 1)
            layout.addLayout(tx_row)
            layout.addLayout(tools_row)

            self.status = self.statusBar()

            self.poll_timer = QtCore.QTimer(self)
            self.poll_timer.setInterval(POLL_INTERVAL_MS)
            self.poll_timer.timeout.connect(self.on_poll)

            self.refresh_btn.clicked.connect(self.refresh_ports)
            self.connect_btn.clicked.connect(self.on_toggle)
            self.send_btn.clicked.connect(self.on_send)
            self.tx_edit.returnPressed.connect(self.on_send)
            self.clear_btn.clicked.connect(self.on_clear)
            self.save_btn.clicked.connect(self.on_save_csv)

            self.ctrl.session.add_listener(self.on_entry)

            self.refresh_ports()
            self._load_settings()
            self._update_indicator()

        def closeEvent(self, event):  # type: ignore[override]
            self.poll_timer.stop()
            self.ctrl.shutdown()
            try:
                self._save_settings()
            except Exception:
                logger.exception("saving settings failed")
            super().closeEvent(event)

        def _settings(self):
            return QtCore.QSettings(SETTINGS_ORG, SETTINGS_APP)

        def _save_settings(self) -> None:
            s = self._settings()
            s.beginGroup("window")
            s.setValue("geometry", self.saveGeometry())
            s.endGroup()

            s.beginGroup("serial")
            s.setValue("port", self.port_cb.currentData() or "")
            s.setValue("baud", self.baud_cb.currentText())
            s.setValue("escape_csv", bool(self.escape_ck.isChecked()))
            s.endGroup()

        def _load_settings(self) -> None:
            s = self._settings()

            s.beginGroup("serial")
            saved_port = str(s.value("port", ""))
            saved_baud = _parse_baud(s.value("baud", DEFAULT_BAUD))
            escape = str(s.value("escape_csv", "false")).strip().lower() in ("1", "true", "yes", "on")
            s.endGroup()

            if saved_port:
                for i in range(self.port_cb.count()):
                    if self.port_cb.itemData(i) == saved_port:
                        self.port_cb.setCurrentIndex(i)
                        break
            self.baud_cb.setCurrentText(str(saved_baud))
            self.escape_ck.setChecked(escape)

            s.beginGroup("window")
            geom = s.value("geometry")
            if geom is not None:
                self.restoreGeometry(geom)
            s.endGroup()

        def _show_error(self, exc: SerialLoggerError) -> None:
            self.status.showMessage(str(exc))
            if _is_warning(exc):
                QtWidgets.QMessageBox.warning(self, "Warning", str(exc))
            else:
                QtWidgets.QMessageBox.critical(self, "Error", str(exc))

        def _update_indicator(self) -> None:
            state = self.ctrl.state
            self.indicator.setStyleSheet(_indicator_style(state))
            self.indicator.setToolTip(state.value)
            connected = state is ConnectionState.CONNECTED
            self.connect_btn.setText("Disconnect" if connected else "Connect")
            self.port_cb.setEnabled(not connected)
            self.baud_cb.setEnabled(not connected)
            self.refresh_btn.setEnabled(not connected)

        def refresh_ports(self) -> None:
            self.port_cb.clear()
            for device, desc in self.ctrl.dispatch("refresh"):
                label = device
                if desc:
                    label += f"  ({desc})"
                self.port_cb.addItem(label, userData=device)

        def _cfg(self) -> PortConfig:
            return PortConfig(port=self.port_cb.currentData() or "", baudrate=_parse_baud(self.baud_cb.currentText()))

        def on_toggle(self) -> None:
            try:
                config = None if self.ctrl.connection.is_connected else self._cfg()
                state = self.ctrl.dispatch("toggle", config)
            except ValueError as exc:
                QtWidgets.QMessageBox.critical(self, "Error", str(exc))
                return
            except SerialLoggerError as exc:
                self._show_error(exc)
                self._update_indicator()
                return

            self._update_indicator()
            if state is ConnectionState.CONNECTED:
                self.poll_timer.start()
                port = config.port if config else ""
                self.status.showMessage(f"Connected to {port}")
                QtWidgets.QMessageBox.information(self, "Connected", f"Successfully connected to {port}")
            else:
                self.poll_timer.stop()
                self.status.showMessage("Disconnected")
                QtWidgets.QMessageBox.information(self, "Disconnected", "Connection closed")

        def on_poll(self) -> None:
            try:
                self.ctrl.dispatch("poll")
            except SerialLoggerError as exc:
                # Stays connected; polling resumes on the next connect.
                self.poll_timer.stop()
                self._show_error(exc)

        def on_entry(self, entry: LogEntry) -> None:
            self.rx_view.appendPlainText(_view_line(entry))

        def on_send(self) -> None:
            try:
                self.ctrl.dispatch("send", self.tx_edit.text())
            except SerialLoggerError as exc:
                self._show_error(exc)
                return
            self.tx_edit.clear()

        def on_clear(self) -> None:
            self.rx_view.clear()
            self.ctrl.dispatch("clear")
            self.status.showMessage("Log cleared")

        def on_save_csv(self) -> None:
            if not len(self.ctrl.session):
                self._show_error(EmptyLog())
                return
            path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Save CSV File", "", "CSV Files (*.csv)")
            if not path:
                return
            try:
                count = self.ctrl.dispatch("save_csv", path, escape=self.escape_ck.isChecked())
            except SerialLoggerError as exc:
                self._show_error(exc)
                return
            self.status.showMessage(f"Saved {count} entries to {path}")
            QtWidgets.QMessageBox.information(self, "Success", "Data saved successfully")

    app = QtWidgets.QApplication(sys.argv)
    w = MainWindow()
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
