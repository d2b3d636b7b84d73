from __future__ import annotations

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from config_utils import read_int_env
from languages import LANGUAGES


class TranslatorWindow(QWidget):
    TEXT_FONT_FAMILIES = ["Inter", "Segoe UI", "Helvetica Neue", "Sans Serif"]

    input_changed = pyqtSignal(str)
    translate_requested = pyqtSignal()
    swap_requested = pyqtSignal()
    listen_toggled = pyqtSignal(bool)
    source_language_changed = pyqtSignal(str)
    target_language_changed = pyqtSignal(str)
    auto_translate_changed = pyqtSignal(bool)
    copy_requested = pyqtSignal()

    def __init__(self) -> None:
        super().__init__()
        self._listening = False
        self._loading = False
        self._build_ui()
        self._apply_window_style()

    def input_text(self) -> str:
        return self.input_view.toPlainText()

    def output_text(self) -> str:
        return self.output_view.toPlainText()

    def source_language(self) -> str:
        return str(self.source_combo.currentData() or "")

    def target_language(self) -> str:
        return str(self.target_combo.currentData() or "")

    def set_input_text(self, text: str) -> None:
        if text == self.input_text():
            return
        self.input_view.setPlainText(text)

    def append_input_text(self, text: str) -> None:
        addition = (text or "").strip()
        if not addition:
            return
        current = self.input_text()
        separator = " " if current and not current[-1].isspace() else ""
        self.set_input_text(f"{current}{separator}{addition}")

    def set_output_text(self, text: str) -> None:
        self.output_view.setPlainText(text)
        self._refresh_buttons()

    def set_languages(self, source: str, target: str) -> None:
        self._select_code(self.source_combo, source)
        self._select_code(self.target_combo, target)

    def set_auto_translate(self, enabled: bool) -> None:
        self.auto_translate_checkbox.blockSignals(True)
        self.auto_translate_checkbox.setChecked(enabled)
        self.auto_translate_checkbox.blockSignals(False)

    def set_loading(self, loading: bool) -> None:
        self._loading = loading
        self.loading_label.setVisible(loading)
        self.translate_button.setText("Translating..." if loading else "Translate")
        self._refresh_buttons()

    def set_listening(self, listening: bool) -> None:
        self._listening = listening
        self.mic_button.setText("Stop Listening" if listening else "Start Listening")
        if not listening:
            self.set_live_preview("")

    def set_live_preview(self, text: str) -> None:
        self.preview_label.setText(text)
        self.preview_label.setVisible(bool(text))

    def set_speech_supported(self, supported: bool) -> None:
        self.mic_button.setEnabled(supported)
        if not supported:
            self.mic_button.setToolTip("Speech recognition is not available.")

    def set_status(self, message: str) -> None:
        self.status_label.setStyleSheet("")
        self.status_label.setText(message)

    def show_error(self, message: str) -> None:
        self.status_label.setStyleSheet("color: #e74c3c;")
        self.status_label.setText(message)

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)

        header = QHBoxLayout()
        title = QLabel("Live Voice Translator")
        title.setObjectName("titleLabel")
        header.addWidget(title)
        header.addStretch(1)
        self.auto_translate_checkbox = QCheckBox("Auto-translate")
        self.auto_translate_checkbox.stateChanged.connect(
            lambda state: self.auto_translate_changed.emit(state == Qt.CheckState.Checked.value)
        )
        header.addWidget(self.auto_translate_checkbox)
        root.addLayout(header)

        panels = QHBoxLayout()
        panels.setSpacing(10)
        root.addLayout(panels, 1)

        font_size = read_int_env("TRANSLATOR_FONT_SIZE", 14)

        input_panel = QFrame()
        input_panel.setObjectName("panel")
        input_layout = QVBoxLayout(input_panel)
        self.source_combo = self._make_language_combo("Translate from")
        self.source_combo.currentIndexChanged.connect(
            lambda _index: self.source_language_changed.emit(self.source_language())
        )
        input_layout.addWidget(self.source_combo)
        self.input_view = QTextEdit()
        self.input_view.setAcceptRichText(False)
        self.input_view.setPlaceholderText("Enter text to translate...")
        self.input_view.setFont(self._make_text_font(font_size))
        self.input_view.textChanged.connect(self._on_input_text_changed)
        input_layout.addWidget(self.input_view, 1)
        self.preview_label = QLabel("")
        self.preview_label.setObjectName("previewLabel")
        self.preview_label.setWordWrap(True)
        self.preview_label.setVisible(False)
        input_layout.addWidget(self.preview_label)
        self.mic_button = QPushButton("Start Listening")
        self.mic_button.clicked.connect(self._on_mic_clicked)
        input_layout.addWidget(self.mic_button, alignment=Qt.AlignmentFlag.AlignRight)
        panels.addWidget(input_panel, 1)

        self.swap_button = QPushButton("⇄")
        self.swap_button.setToolTip("Swap languages")
        self.swap_button.setFixedWidth(48)
        self.swap_button.clicked.connect(self.swap_requested.emit)
        panels.addWidget(self.swap_button, alignment=Qt.AlignmentFlag.AlignVCenter)

        output_panel = QFrame()
        output_panel.setObjectName("panel")
        output_layout = QVBoxLayout(output_panel)
        self.target_combo = self._make_language_combo("Translate to")
        self.target_combo.currentIndexChanged.connect(
            lambda _index: self.target_language_changed.emit(self.target_language())
        )
        output_layout.addWidget(self.target_combo)
        self.output_view = QTextEdit()
        self.output_view.setReadOnly(True)
        self.output_view.setAcceptRichText(False)
        self.output_view.setPlaceholderText("Translation will appear here...")
        self.output_view.setFont(self._make_text_font(font_size))
        output_layout.addWidget(self.output_view, 1)
        output_row = QHBoxLayout()
        self.loading_label = QLabel("Translating...")
        self.loading_label.setVisible(False)
        output_row.addWidget(self.loading_label)
        output_row.addStretch(1)
        self.copy_button = QPushButton("Copy")
        self.copy_button.clicked.connect(self.copy_requested.emit)
        output_row.addWidget(self.copy_button)
        output_layout.addLayout(output_row)
        panels.addWidget(output_panel, 1)

        self.translate_button = QPushButton("Translate")
        self.translate_button.clicked.connect(self.translate_requested.emit)
        root.addWidget(self.translate_button)

        self.status_label = QLabel("Ready")
        root.addWidget(self.status_label)
        self._refresh_buttons()

    def _apply_window_style(self) -> None:
        self.setWindowTitle("Live Voice Translator")
        self.setMinimumSize(720, 360)
        self.resize(960, 480)
        self.setStyleSheet(
            """
            #panel {
                border: 1px solid rgba(0, 0, 0, 40);
                border-radius: 10px;
            }
            #titleLabel {
                font-size: 18px;
                font-weight: bold;
            }
            #previewLabel {
                color: rgba(90, 90, 90, 255);
                font-style: italic;
            }
            QPushButton {
                border: 1px solid rgba(0, 0, 0, 50);
                border-radius: 8px;
                padding: 6px 9px;
            }
            """
        )

    def _make_language_combo(self, label: str) -> QComboBox:
        combo = QComboBox()
        combo.setAccessibleName(label)
        for code, name in LANGUAGES:
            combo.addItem(name, code)
        return combo

    @staticmethod
    def _select_code(combo: QComboBox, code: str) -> None:
        index = combo.findData(code)
        if index >= 0 and index != combo.currentIndex():
            combo.setCurrentIndex(index)

    def _on_input_text_changed(self) -> None:
        self._refresh_buttons()
        self.input_changed.emit(self.input_text())

    def _on_mic_clicked(self) -> None:
        self.listen_toggled.emit(not self._listening)

    def _refresh_buttons(self) -> None:
        self.translate_button.setEnabled(bool(self.input_text().strip()) and not self._loading)
        self.copy_button.setEnabled(bool(self.output_text().strip()))

    @classmethod
    def _make_text_font(cls, point_size: int) -> QFont:
        font = QFont()
        font.setFamilies(cls.TEXT_FONT_FAMILIES)
        font.setStyleHint(QFont.StyleHint.SansSerif)
        font.setPointSize(point_size)
        return font
