from __future__ import annotations

import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QThread, pyqtSignal
from PyQt6.QtGui import QCloseEvent
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from .completion_client import CompletionClient, CompletionSettings, KNOWN_MODELS, validate_completion_settings
from .config import AppConfig
from .engine import EmptyScript, KeywordExtractor
from .models import ExtractionMode, ExtractionRequest, ExtractionResult
from .parser import format_entries

_MODE_LABELS = {
    ExtractionMode.SHORT_PHRASE: "3 words per phrase",
    ExtractionMode.LONG_PHRASE: "4 words per phrase",
    ExtractionMode.METADATA: "Title / Meta metadata",
}


class ExtractionWorker(QThread):
    progress = pyqtSignal(int, int)
    log_event = pyqtSignal(str, str)
    finished = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, extractor: KeywordExtractor):
        super().__init__()
        self.extractor = extractor
        self._cancel_event = threading.Event()

    def request_cancel(self) -> None:
        self._cancel_event.set()

    def run(self) -> None:
        try:
            result = self.extractor.run(
                cancel_event=self._cancel_event,
                progress_callback=lambda idx, total: self.progress.emit(idx, total),
            )
            self.finished.emit(result)
        except Exception as exc:  # pragma: no cover - UI thread handles feedback
            self.failed.emit(str(exc))


class KeywordExtractorWindow(QWidget):
    def __init__(self, config: AppConfig):
        super().__init__()
        self.config = config
        self.worker: Optional[ExtractionWorker] = None
        self.result: Optional[ExtractionResult] = None
        self._started_at: Optional[float] = None
        self.setWindowTitle("Cinematic B-roll Keyword Extractor")
        self.resize(self.config.get("window_width"), self.config.get("window_height"))
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        form = QFormLayout()

        self.knowledge_edit = QLineEdit(str(self.config.get("knowledge_base_path") or ""))
        knowledge_btn = QPushButton("Browse...")
        knowledge_btn.clicked.connect(lambda: self._select_file(self.knowledge_edit, "knowledge_base_path"))
        form.addRow("Knowledge base (optional)", self._wrap_with_button(self.knowledge_edit, knowledge_btn))

        self.schema_edit = QLineEdit(str(self.config.get("schema_tool_path") or ""))
        schema_btn = QPushButton("Browse...")
        schema_btn.clicked.connect(lambda: self._select_file(self.schema_edit, "schema_tool_path"))
        form.addRow("Schema tool (optional)", self._wrap_with_button(self.schema_edit, schema_btn))

        self.model_combo = QComboBox()
        self.model_combo.setEditable(True)
        self.model_combo.setInsertPolicy(QComboBox.InsertPolicy.NoInsert)
        for candidate in KNOWN_MODELS:
            self.model_combo.addItem(candidate)
        self.model_combo.setEditText(str(self.config.get("model") or KNOWN_MODELS[0]))
        form.addRow("Model", self.model_combo)

        self.mode_combo = QComboBox()
        for mode, label in _MODE_LABELS.items():
            self.mode_combo.addItem(label, mode.value)
        idx = self.mode_combo.findData(self.config.get("mode").value)
        if idx >= 0:
            self.mode_combo.setCurrentIndex(idx)
        form.addRow("Output", self.mode_combo)

        layout.addLayout(form)

        self.script_edit = QPlainTextEdit()
        self.script_edit.setPlaceholderText("Paste your VSL script here...")
        layout.addWidget(self.script_edit, stretch=2)

        controls = QHBoxLayout()
        self.extract_button = QPushButton("Extract Keywords")
        self.extract_button.clicked.connect(self._start_extraction)
        controls.addWidget(self.extract_button)

        self.cancel_button = QPushButton("Cancel")
        self.cancel_button.setEnabled(False)
        self.cancel_button.clicked.connect(self._cancel_extraction)
        controls.addWidget(self.cancel_button)

        controls.addStretch()
        self.status_label = QLabel("Idle")
        controls.addWidget(self.status_label)
        layout.addLayout(controls)

        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setValue(0)
        layout.addWidget(self.progress)

        self.stats_label = QLabel("")
        layout.addWidget(self.stats_label)

        self.output_view = QPlainTextEdit()
        self.output_view.setReadOnly(True)
        self.output_view.setPlaceholderText("Generated keywords will appear here.")
        layout.addWidget(self.output_view, stretch=2)

        result_controls = QHBoxLayout()
        self.copy_button = QPushButton("Copy All Keywords")
        self.copy_button.setEnabled(False)
        self.copy_button.clicked.connect(self._copy_results)
        result_controls.addWidget(self.copy_button)
        self.save_button = QPushButton("Save...")
        self.save_button.setEnabled(False)
        self.save_button.clicked.connect(self._save_results)
        result_controls.addWidget(self.save_button)
        result_controls.addStretch()
        layout.addLayout(result_controls)

        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumHeight(120)
        layout.addWidget(self.log_view)

    def _wrap_with_button(self, line_edit: QLineEdit, button: QPushButton) -> QWidget:
        container = QWidget()
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(line_edit)
        layout.addWidget(button)
        return container

    def _select_file(self, target: QLineEdit, config_key: str) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Select file", target.text(), "Text files (*.txt *.json *.csv);;All files (*)"
        )
        if path:
            target.setText(path)
            self.config.set(config_key, path)

    def _build_extractor(self) -> KeywordExtractor:
        model = self.model_combo.currentText().strip()
        endpoint = str(self.config.get("endpoint_url") or "").strip()
        valid, message = validate_completion_settings(endpoint, model)
        if not valid:
            raise ValueError(message)
        mode = ExtractionMode.from_flag(self.mode_combo.currentData())
        self.config.set("model", model)
        self.config.set("mode", mode)
        request = ExtractionRequest(
            script=self.script_edit.toPlainText(),
            model=model,
            mode=mode,
            batch_size=self.config.get("batch_size"),
            delay=self.config.get("request_delay"),
            knowledge_base_path=self._path_or_none(self.knowledge_edit.text()),
            schema_tool_path=self._path_or_none(self.schema_edit.text()),
        )
        settings = CompletionSettings(
            model=model,
            endpoint_url=endpoint,
            timeout=self.config.get("request_timeout"),
            max_attempts=max(1, self.config.get("max_attempts")),
            encode_messages=self.config.get("encode_messages"),
        )
        return KeywordExtractor(request, client=CompletionClient(settings), log_callback=self._emit_log)

    @staticmethod
    def _path_or_none(text: str) -> Optional[Path]:
        value = text.strip()
        return Path(value).expanduser() if value else None

    def _emit_log(self, level: str, message: str) -> None:
        if self.worker is not None:
            self.worker.log_event.emit(level, message)

    def _start_extraction(self) -> None:
        if self.worker and self.worker.isRunning():
            return
        try:
            extractor = self._build_extractor()
        except EmptyScript as exc:
            QMessageBox.warning(self, "Missing script", str(exc))
            return
        except ValueError as exc:
            QMessageBox.warning(self, "Invalid input", str(exc))
            return
        self.result = None
        self.output_view.clear()
        self.stats_label.setText("")
        self.log_view.clear()
        self.progress.setValue(0)
        self.status_label.setText("Analyzing script structure...")
        self._started_at = time.perf_counter()
        self._append_log("info", f"Extraction started at {datetime.now().strftime('%H:%M:%S')}")
        self._set_running(True)
        self.worker = ExtractionWorker(extractor)
        self.worker.progress.connect(self._on_progress)
        self.worker.log_event.connect(self._append_log)
        self.worker.finished.connect(self._on_finished)
        self.worker.failed.connect(self._on_failed)
        self.worker.start()

    def _cancel_extraction(self) -> None:
        if not self.worker or not self.worker.isRunning():
            return
        self.worker.request_cancel()
        self.cancel_button.setEnabled(False)
        self.status_label.setText("Cancelling after current chunk...")

    def _set_running(self, running: bool) -> None:
        self.extract_button.setEnabled(not running)
        self.extract_button.setText("Processing..." if running else "Extract Keywords")
        self.cancel_button.setEnabled(running)
        self.mode_combo.setEnabled(not running)
        self.model_combo.setEnabled(not running)
        self.copy_button.setEnabled(not running and self.result is not None and self.result.ok)
        self.save_button.setEnabled(not running and self.result is not None and self.result.ok)

    def _on_progress(self, idx: int, total: int) -> None:
        percent = int(idx * 100 / total) if total else 100
        self.progress.setValue(percent)
        self.status_label.setText(f"Processed chunk {idx} of {total}")

    def _on_finished(self, result: ExtractionResult) -> None:
        self.result = result
        elapsed = time.perf_counter() - (self._started_at or time.perf_counter())
        self.stats_label.setText(result.summary())
        self.output_view.setPlainText(format_entries(result.entries, result.mode))
        if result.ok:
            self.progress.setValue(100 if not result.cancelled else self.progress.value())
            self.status_label.setText(f"{'Cancelled' if result.cancelled else 'Done'} in {elapsed:.1f}s")
        else:
            self.status_label.setText("Failed")
        self._set_running(False)

    def _on_failed(self, message: str) -> None:
        self._append_log("error", message)
        self.status_label.setText("Failed")
        self._set_running(False)
        QMessageBox.critical(self, "Extraction failed", message)

    def _append_log(self, level: str, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.log_view.appendPlainText(f"[{timestamp}] {level.upper()}: {message}")
        if level in {"info", "warning"} and self.worker and self.worker.isRunning():
            self.status_label.setText(message)

    def _copy_results(self) -> None:
        if not self.result or not self.result.entries:
            return
        QApplication.clipboard().setText(self.result.to_text())
        self._append_log("success", "Keywords copied to clipboard.")

    def _save_results(self) -> None:
        if not self.result:
            return
        default_dir = Path(self.config.get("output_dir") or Path.home())
        default_name = default_dir / f"broll_{self.result.mode.value}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.txt"
        path, _ = QFileDialog.getSaveFileName(self, "Save keywords", str(default_name), "Text files (*.txt)")
        if not path:
            return
        target = Path(path)
        try:
            target.write_text(self.result.to_text() + "\n", encoding="utf-8")
        except OSError as exc:
            QMessageBox.critical(self, "Save failed", str(exc))
            return
        self.config.set("output_dir", str(target.parent))
        self._append_log("success", f"Saved {self.result.entry_count} entries to {target}")

    def closeEvent(self, event: QCloseEvent) -> None:
        if self.worker and self.worker.isRunning():
            self.worker.request_cancel()
            self.worker.wait()
        self.config.set("window_width", self.width())
        self.config.set("window_height", self.height())
        super().closeEvent(event)


def launch_window(config: AppConfig) -> int:
    app = QApplication.instance() or QApplication(sys.argv[:1])
    window = KeywordExtractorWindow(config)
    window.show()
    return app.exec()
