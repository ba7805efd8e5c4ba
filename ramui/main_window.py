from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QRect, QSize, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import (
    QAction,
    QColor,
    QFont,
    QFontDatabase,
    QKeySequence,
    QPainter,
    QShortcut,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
)
from PyQt6.QtWidgets import (
    QApplication,
    QDockWidget,
    QFileDialog,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QSpinBox,
    QSplitter,
    QTableView,
    QTableWidget,
    QTableWidgetItem,
    QTextEdit,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ramcore.emulator import Emulator, StepOutcome
from ramcore.instructions import get_instruction_defs
from ramcore.linker import LinkError, UndefinedLabel, load_program
from ramcore.machine import check_inputs
from ramcore.model import Program
from ramcore.parser import ParseError
from ramcore.profiles import Profile, ProfileError, ProfileValidationError, profile_manager
from ramui.breakpoints import (
    BreakpointManager,
    BreakpointsTableModel,
    BreakpointType,
    ConditionalBreakpointDialog,
)


class RamHighlighter(QSyntaxHighlighter):
    def __init__(self, parent) -> None:
        super().__init__(parent)
        self.mnemonic_format = QTextCharFormat()
        self.mnemonic_format.setForeground(QColor("#ff79c6"))
        self.mnemonic_format.setFontWeight(QFont.Weight.Bold)

        self.label_format = QTextCharFormat()
        self.label_format.setForeground(QColor("#50fa7b"))

        self.operand_format = QTextCharFormat()
        self.operand_format.setForeground(QColor("#ffb86c"))

        self.comment_format = QTextCharFormat()
        self.comment_format.setForeground(QColor("#6272a4"))

        self.mnemonics = {d.mnemonic for d in get_instruction_defs()}

    def highlightBlock(self, text: str) -> None:
        comment_index = text.find("#")
        if comment_index >= 0:
            self.setFormat(comment_index, len(text) - comment_index, self.comment_format)
            text = text[:comment_index]

        offset = 0
        for token in text.split():
            start = text.find(token, offset)
            offset = start + len(token)
            if token.endswith(":"):
                self.setFormat(start, len(token), self.label_format)
            elif token.upper() in self.mnemonics:
                self.setFormat(start, len(token), self.mnemonic_format)
            elif token[0] in "=^" or token.lstrip("+-").isdigit():
                self.setFormat(start, len(token), self.operand_format)


class LineNumberArea(QWidget):
    def __init__(self, editor: "CodeEditor") -> None:
        super().__init__(editor)
        self.editor = editor

    def sizeHint(self) -> QSize:
        return QSize(self.editor.line_number_area_width(), 0)

    def paintEvent(self, event) -> None:
        self.editor.line_number_area_paint_event(event)

    def mousePressEvent(self, event) -> None:
        self.editor.line_number_area_mouse_event(event)


class CodeEditor(QPlainTextEdit):
    breakpoint_toggle_requested = pyqtSignal(int)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._line_number_bg = QColor("#1e1f29")
        self._line_number_fg = QColor("#6272a4")
        self._breakpoint_area_width = 14
        self._breakpoint_enabled_color = QColor("#ff5555")
        self._breakpoint_disabled_color = QColor("#6272a4")
        self._breakpoint_temporary_color = QColor("#ffb86c")
        self.breakpoint_manager: Optional[BreakpointManager] = None
        self.current_file: Optional[str] = None
        self.line_number_area = LineNumberArea(self)

        self.blockCountChanged.connect(self.update_line_number_area_width)
        self.updateRequest.connect(self.update_line_number_area)
        self.update_line_number_area_width(0)

    def line_number_area_width(self) -> int:
        digits = max(1, len(str(self.blockCount())))
        return self._breakpoint_area_width + 10 + self.fontMetrics().horizontalAdvance("9") * digits

    def set_breakpoint_manager(self, manager: Optional[BreakpointManager]) -> None:
        self.breakpoint_manager = manager
        self.line_number_area.update()

    def set_current_file(self, path: Optional[str]) -> None:
        self.current_file = path
        self.line_number_area.update()

    def update_line_number_area_width(self, _block_count: int) -> None:
        self.setViewportMargins(self.line_number_area_width(), 0, 0, 0)

    def update_line_number_area(self, rect: QRect, dy: int) -> None:
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self.update_line_number_area_width(0)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        contents = self.contentsRect()
        self.line_number_area.setGeometry(
            QRect(contents.left(), contents.top(), self.line_number_area_width(), contents.height())
        )

    def line_number_area_paint_event(self, event) -> None:
        painter = QPainter(self.line_number_area)
        painter.fillRect(event.rect(), self._line_number_bg)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        line_breakpoints = {}
        if self.breakpoint_manager and self.current_file:
            for bp in self.breakpoint_manager.get_line_breakpoints(self.current_file):
                if bp.line is not None:
                    line_breakpoints[bp.line] = bp

        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        bottom = top + self.blockBoundingRect(block).height()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                line_no = block_number + 1
                bp = line_breakpoints.get(line_no)
                if bp:
                    radius = 5
                    center_x = self._breakpoint_area_width // 2
                    center_y = int(top + (self.fontMetrics().height() / 2))
                    if not bp.enabled:
                        painter.setPen(self._breakpoint_disabled_color)
                        painter.setBrush(Qt.BrushStyle.NoBrush)
                    else:
                        color = (
                            self._breakpoint_temporary_color
                            if bp.type == BreakpointType.TEMPORARY_LINE
                            else self._breakpoint_enabled_color
                        )
                        painter.setPen(color)
                        painter.setBrush(color)
                    painter.drawEllipse(center_x - radius, center_y - radius, radius * 2, radius * 2)
                painter.setPen(self._line_number_fg)
                painter.drawText(
                    self._breakpoint_area_width,
                    int(top),
                    self.line_number_area.width() - self._breakpoint_area_width - 6,
                    int(self.fontMetrics().height()),
                    Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                    str(line_no),
                )
            block = block.next()
            top = bottom
            bottom = top + self.blockBoundingRect(block).height()
            block_number += 1

    def line_number_area_mouse_event(self, event) -> None:
        if event.button() != Qt.MouseButton.LeftButton:
            return
        y = event.position().y()
        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        bottom = top + self.blockBoundingRect(block).height()
        while block.isValid() and top <= y:
            if block.isVisible() and bottom >= y:
                self.breakpoint_toggle_requested.emit(block_number + 1)
                return
            block = block.next()
            top = bottom
            bottom = top + self.blockBoundingRect(block).height()
            block_number += 1


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("RAM Debugger")
        self.resize(1200, 700)

        self.current_file: Optional[str] = None
        self.source_dirty = True
        self.run_state = "Ready"
        self.prev_memory: dict[int, int] = {}
        self._skip_breakpoint_id: Optional[int] = None

        self.program: Optional[Program] = None
        self.emulator: Optional[Emulator] = None
        self.breakpoint_manager = BreakpointManager()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.on_timer_step)

        self._build_ui()
        self._setup_shortcuts()
        profile_manager.on_change(self._on_profile_changed)
        self._update_views()
        self._load_breakpoints()

    def _setup_shortcuts(self) -> None:
        self.shortcuts: list[QShortcut] = []
        shortcut_map = [
            ("F5", self.play),
            ("Shift+F5", self.pause),
            ("F9", self.toggle_breakpoint_at_cursor),
            ("F10", self.step_once),
            ("Ctrl+Shift+F5", self.reset_state),
            ("Ctrl+S", self.save_file),
            ("Ctrl+O", self.open_file),
        ]
        for keys, handler in shortcut_map:
            shortcut = QShortcut(QKeySequence(keys), self)
            shortcut.activated.connect(handler)
            self.shortcuts.append(shortcut)

    def _build_ui(self) -> None:
        self.file_menu = self.menuBar().addMenu("File")
        self.debug_menu = self.menuBar().addMenu("Debug")
        self.profile_menu = self.menuBar().addMenu("Profile")

        for title, handler in (
            ("New", self.new_file),
            ("Open", self.open_file),
            ("Save", self.save_file),
            ("Save As", self.save_file_as),
            ("Exit", self.close),
        ):
            action = QAction(title, self)
            action.triggered.connect(handler)
            self.file_menu.addAction(action)

        for title, handler in (
            ("Toggle Breakpoint", self.toggle_breakpoint_at_cursor),
            ("Break Here", self.break_here),
            ("Add Conditional Breakpoint...", self.add_conditional_breakpoint),
        ):
            action = QAction(title, self)
            action.triggered.connect(handler)
            self.debug_menu.addAction(action)

        for path in profile_manager.list_bundled():
            action = QAction(path.stem, self)
            action.triggered.connect(lambda _checked=False, p=path: self.load_profile(p))
            self.profile_menu.addAction(action)
        load_profile_action = QAction("Load Profile...", self)
        load_profile_action.triggered.connect(self.open_profile)
        self.profile_menu.addAction(load_profile_action)

        center_panel = QWidget()
        center_layout = QVBoxLayout(center_panel)
        center_layout.setContentsMargins(8, 8, 8, 8)
        center_layout.addWidget(QLabel("Program"))
        center_layout.addWidget(self._build_center_controls())
        self.editor = CodeEditor()
        self.editor.setFont(self._default_font())
        self.editor.textChanged.connect(self.on_text_changed)
        self.editor.set_breakpoint_manager(self.breakpoint_manager)
        self.editor.set_current_file(self._current_file_key())
        self.editor.breakpoint_toggle_requested.connect(self.on_gutter_breakpoint_toggle)
        self.highlighter = RamHighlighter(self.editor.document())
        center_layout.addWidget(self.editor)

        input_row = QHBoxLayout()
        input_row.addWidget(QLabel("Input"))
        self.input_edit = QLineEdit()
        self.input_edit.setPlaceholderText("3, 5, -1")
        self.input_edit.setFont(self._default_font())
        input_row.addWidget(self.input_edit)
        center_layout.addLayout(input_row)
        center_layout.addLayout(self._build_editor_footer())

        state_panel = QWidget()
        state_layout = QVBoxLayout(state_panel)
        state_layout.setContentsMargins(8, 8, 8, 8)
        self.acc_label = QLabel()
        self.pc_label = QLabel()
        self.steps_label = QLabel()
        for label in (self.acc_label, self.pc_label, self.steps_label):
            label.setFont(self._default_font())
            state_layout.addWidget(label)
        state_layout.addWidget(QLabel("Memory"))
        self.memory_table = QTableWidget(0, 2)
        self.memory_table.setHorizontalHeaderLabels(["Address", "Value"])
        self.memory_table.verticalHeader().setVisible(False)
        self.memory_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.memory_table.setFont(self._default_font())
        self.memory_table.horizontalHeader().setStretchLastSection(True)
        state_layout.addWidget(self.memory_table)

        self.output_view = QPlainTextEdit()
        self.output_view.setReadOnly(True)
        self.output_view.setFont(self._default_font())
        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)
        self.log_output.setFont(self._default_font())

        right_splitter = QSplitter(Qt.Orientation.Vertical)
        right_splitter.addWidget(state_panel)
        right_splitter.addWidget(self._build_output_panel("Output", self.output_view))
        right_splitter.addWidget(self._build_output_panel("Log", self.log_output))
        right_splitter.setMinimumWidth(260)

        central_splitter = QSplitter(Qt.Orientation.Horizontal)
        central_splitter.addWidget(center_panel)
        central_splitter.addWidget(right_splitter)
        central_splitter.setStretchFactor(0, 3)
        central_splitter.setStretchFactor(1, 2)
        self.setCentralWidget(central_splitter)

        reference_dock = QDockWidget("Instruction Reference", self)
        reference_dock.setObjectName("ReferenceDock")
        self.reference_table = QTableWidget(0, 4)
        self.reference_table.setHorizontalHeaderLabels(["Mnemonic", "Meaning", "Syntax", "Notes"])
        self.reference_table.verticalHeader().setVisible(False)
        self.reference_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        reference_header = self.reference_table.horizontalHeader()
        reference_header.setSectionResizeMode(QHeaderView.ResizeMode.Interactive)
        reference_header.setStretchLastSection(True)
        reference_dock.setWidget(self.reference_table)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, reference_dock)
        self._populate_reference(profile_manager.active_profile)

        breakpoints_dock = QDockWidget("Breakpoints", self)
        breakpoints_dock.setObjectName("BreakpointsDock")
        self.breakpoints_model = BreakpointsTableModel(self.breakpoint_manager, self)
        self.breakpoints_view = QTableView()
        self.breakpoints_view.setModel(self.breakpoints_model)
        self.breakpoints_view.horizontalHeader().setStretchLastSection(True)
        self.breakpoints_view.clicked.connect(self.on_breakpoints_table_clicked)
        breakpoints_dock.setWidget(self.breakpoints_view)
        self.addDockWidget(Qt.DockWidgetArea.BottomDockWidgetArea, breakpoints_dock)
        self.breakpoint_manager.changed.connect(self._on_breakpoints_changed)

        self.state_label = QLabel()
        self.line_label = QLabel()
        self.statusBar().addWidget(self.state_label)
        self.statusBar().addPermanentWidget(self.line_label)

    def _build_output_panel(self, title: str, text_edit: QPlainTextEdit) -> QWidget:
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(8, 4, 8, 4)
        layout.setSpacing(4)

        controls = QHBoxLayout()
        controls.addWidget(QLabel(title))
        controls.addStretch(1)
        clear_button = QToolButton()
        clear_button.setText("Clear")
        clear_button.setAutoRaise(True)
        clear_button.clicked.connect(text_edit.clear)
        controls.addWidget(clear_button)
        layout.addLayout(controls)
        layout.addWidget(text_edit)
        return container

    def _build_center_controls(self) -> QWidget:
        widget = QWidget()
        layout = QHBoxLayout(widget)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(12)
        layout.setAlignment(Qt.AlignmentFlag.AlignLeft)

        self.play_button = QToolButton()
        self.pause_button = QToolButton()
        self.step_button = QToolButton()
        self.reset_button = QToolButton()
        for button, text, tooltip, handler in (
            (self.play_button, "Run", "Run (F5)", self.play),
            (self.pause_button, "Pause", "Pause (Shift+F5)", self.pause),
            (self.step_button, "Step", "Step (F10)", self.step_once),
            (self.reset_button, "Reset", "Reset (Ctrl+Shift+F5)", self.reset_state),
        ):
            button.setText(text)
            button.setToolTip(tooltip)
            button.clicked.connect(handler)
            layout.addWidget(button)

        layout.addStretch(1)
        self.profile_label = QLabel()
        layout.addWidget(self.profile_label)
        return widget

    def _build_editor_footer(self) -> QHBoxLayout:
        layout = QHBoxLayout()
        layout.setContentsMargins(0, 8, 0, 0)
        layout.addStretch(1)
        layout.addWidget(QLabel("Steps/s"))
        self.rate_spin = QSpinBox()
        self.rate_spin.setRange(1, 1000)
        self.rate_spin.setValue(5)
        self.rate_spin.valueChanged.connect(self._update_timer_interval)
        layout.addWidget(self.rate_spin)
        return layout

    def _default_font(self) -> QFont:
        preferred = ["JetBrains Mono", "Fira Code", "Source Code Pro", "DejaVu Sans Mono", "Consolas", "Menlo"]
        available = set(QFontDatabase.families())
        for name in preferred:
            if name in available:
                return QFont(name, 11)
        return QFont("Monospace", 11)

    def _current_file_key(self) -> str:
        return self.current_file or "__unsaved__"

    def _set_current_file(self, path: Optional[str]) -> None:
        self.current_file = os.path.abspath(path) if path else None
        self.editor.set_current_file(self._current_file_key())
        title = f"RAM Debugger - {self.current_file}" if self.current_file else "RAM Debugger"
        self.setWindowTitle(title)

    def _breakpoints_path(self) -> str:
        return os.path.join(Path.home(), ".ram_debugger_breakpoints.json")

    def _load_breakpoints(self) -> None:
        path = self._breakpoints_path()
        if not os.path.exists(path):
            return
        try:
            with open(path, "r", encoding="utf-8") as handle:
                self.breakpoint_manager.load_json(json.load(handle))
        except (OSError, json.JSONDecodeError) as exc:
            self.log(f"Could not load breakpoints: {exc}")

    def _save_breakpoints(self) -> None:
        try:
            with open(self._breakpoints_path(), "w", encoding="utf-8") as handle:
                json.dump(self.breakpoint_manager.to_json(), handle, indent=2)
        except OSError as exc:
            self.log(f"Could not save breakpoints: {exc}")

    def _populate_reference(self, profile: Optional[Profile]) -> None:
        defs = [d for d in get_instruction_defs() if profile is None or profile.allows(d.opcode)]
        self.reference_table.setRowCount(len(defs))
        for row, defn in enumerate(defs):
            note = profile.notes.get(defn.mnemonic, "") if profile else ""
            self.reference_table.setItem(row, 0, QTableWidgetItem(defn.mnemonic))
            self.reference_table.setItem(row, 1, QTableWidgetItem(defn.summary))
            self.reference_table.setItem(row, 2, QTableWidgetItem(defn.syntax))
            self.reference_table.setItem(row, 3, QTableWidgetItem(note))
        if profile is not None:
            self.profile_label.setText(f"Profile: {profile.name} ({profile.word_bits}-bit)")

    def _on_profile_changed(self, profile: Profile) -> None:
        self._populate_reference(profile)
        self.source_dirty = True
        self.log(f"Profile loaded: {profile.name}")

    def load_profile(self, path) -> None:
        try:
            profile_manager.load_from_path(path)
        except ProfileError as exc:
            QMessageBox.warning(self, "Profile Error", exc.message)

    def open_profile(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Load Profile", "", "Profiles (*.json);;All Files (*)")
        if path:
            self.load_profile(path)

    def _on_breakpoints_changed(self) -> None:
        self.editor.line_number_area.update()
        self._save_breakpoints()

    def on_gutter_breakpoint_toggle(self, line_no: int) -> None:
        self.breakpoint_manager.toggle_line(self._current_file_key(), line_no)

    def toggle_breakpoint_at_cursor(self) -> None:
        line_no = self.editor.textCursor().blockNumber() + 1
        self.breakpoint_manager.toggle_line(self._current_file_key(), line_no)

    def break_here(self) -> None:
        line_no = self.editor.textCursor().blockNumber() + 1
        self.breakpoint_manager.add_line(self._current_file_key(), line_no, temporary=True)
        self.play()

    def add_conditional_breakpoint(self) -> None:
        data = ConditionalBreakpointDialog(self).get_data()
        if data is None:
            return
        kind, address, value = data
        if kind == "Memory" and address is not None:
            self.breakpoint_manager.add_memory_condition(address, value)
        else:
            self.breakpoint_manager.add_accumulator_condition(value)

    def on_breakpoints_table_clicked(self, index) -> None:
        bp = self.breakpoints_model.breakpoint_at(index.row())
        if not bp:
            return
        if index.column() == 5:
            self.breakpoint_manager.remove(bp.id)
        elif bp.line:
            self._jump_to_line(bp.line)

    def _jump_to_line(self, line_no: int) -> None:
        block = self.editor.document().findBlockByNumber(line_no - 1)
        if not block.isValid():
            return
        self.editor.setTextCursor(QTextCursor(block))
        self.editor.centerCursor()

    def on_text_changed(self) -> None:
        self.source_dirty = True

    def new_file(self) -> None:
        self.editor.clear()
        self._set_current_file(None)
        self.log("New file created.")

    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open program", "", "RAM Programs (*.ram);;All Files (*)")
        if path:
            self.open_file_path(path)

    def open_file_path(self, path: str) -> bool:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                self.editor.setPlainText(handle.read())
        except OSError as exc:
            QMessageBox.warning(self, "Open Failed", str(exc))
            return False
        self._set_current_file(path)
        self.source_dirty = True
        self.log(f"Opened {path}")
        return True

    def save_file(self) -> None:
        if not self.current_file:
            self.save_file_as()
            return
        try:
            with open(self.current_file, "w", encoding="utf-8") as handle:
                handle.write(self.editor.toPlainText())
            self.log(f"Saved {self.current_file}")
        except OSError as exc:
            QMessageBox.warning(self, "Save Failed", str(exc))

    def save_file_as(self) -> None:
        path, _ = QFileDialog.getSaveFileName(self, "Save program", "", "RAM Programs (*.ram);;All Files (*)")
        if not path:
            return
        self._set_current_file(path)
        self.save_file()

    def _read_inputs(self, word_bits: int) -> Optional[List[int]]:
        try:
            values = [int(token) for token in self.input_edit.text().replace(",", " ").split()]
        except ValueError:
            self.set_state("Error")
            self.log("Input must be a list of integers.")
            return None
        try:
            return check_inputs(values, word_bits)
        except ValueError as exc:
            self.set_state("Error")
            self.log(str(exc))
            return None

    def load_current_program(self) -> bool:
        profile = profile_manager.active_profile
        inputs = self._read_inputs(profile.word_bits)
        if inputs is None:
            return False
        try:
            program = load_program(self.editor.toPlainText(), profile)
        except (ParseError, ProfileValidationError) as exc:
            self.set_state("Error")
            self.log(f"Parse error (line {exc.line_no}): {exc.message}")
            self.log(f"  {exc.text}")
            return False
        except UndefinedLabel as exc:
            self.set_state("Error")
            self.log(f"Link error (line {exc.line_no}): undefined label {exc.name!r}")
            return False
        except LinkError as exc:
            self.set_state("Error")
            self.log(f"Link error: {exc.message}")
            return False

        self.program = program
        self.emulator = Emulator(program, inputs, max_steps=profile.max_steps)
        self.prev_memory = {}
        self.source_dirty = False
        self._skip_breakpoint_id = None
        self.output_view.clear()
        self.breakpoint_manager.set_valid_lines(self._current_file_key(), program.source_lines())
        self.set_state("Ready")
        self._update_views()
        return True

    def ensure_program(self) -> bool:
        if self.source_dirty or self.emulator is None:
            return self.load_current_program()
        return True

    def play(self) -> None:
        if not self.ensure_program():
            return
        if self.emulator.halted:
            self.log("Execution halted. Reset to run again.")
            return
        self.set_state("Running")
        self._update_timer_interval()
        self.timer.start()

    def pause(self) -> None:
        self.timer.stop()
        if self.run_state == "Running":
            self.set_state("Paused")

    def _check_breakpoints_before_step(self) -> bool:
        state = self.emulator.state
        line_no = self.program.statements[state.pc].line_no
        should_break, bp_id, reason = self.breakpoint_manager.should_break(
            self._current_file_key(), line_no, state
        )
        if not should_break or bp_id is None:
            return False
        if self._skip_breakpoint_id == bp_id:
            self._skip_breakpoint_id = None
            return False
        removed = self.breakpoint_manager.increment_hit(bp_id)
        self._skip_breakpoint_id = None if removed else bp_id
        self.timer.stop()
        self.set_state("Paused")
        self.log(f"Breakpoint hit: {reason}")
        self._update_views()
        return True

    def step_once(self) -> None:
        self.timer.stop()
        if not self.ensure_program():
            return
        if self.emulator.halted:
            self.log("Execution halted. Reset to run again.")
            self.set_state("Halted")
            return
        if self._check_breakpoints_before_step():
            return
        outcome = self.emulator.step()
        self.handle_step_outcome(outcome)
        self._update_views()
        if not outcome.error and not outcome.halted:
            self.set_state("Paused")

    def on_timer_step(self) -> None:
        if self._check_breakpoints_before_step():
            return
        outcome = self.emulator.step()
        self.handle_step_outcome(outcome)
        self._update_views()
        if outcome.error or outcome.halted:
            self.timer.stop()

    def handle_step_outcome(self, outcome: StepOutcome) -> None:
        if outcome.output is not None:
            self.output_view.appendPlainText(str(outcome.output))
        if outcome.error:
            self.set_state("Error")
            self.log(f"HALT due to error: {type(outcome.error).__name__}: {outcome.error.message}")
            self.log(f"Line {outcome.error.line_no}: {outcome.error.text}")
            return
        if outcome.halted:
            self.set_state("Halted")
            self.log(f"Program halted after {self.emulator.state.steps} steps.")

    def reset_state(self) -> None:
        self.timer.stop()
        if self.load_current_program():
            self.log("Machine state reset.")

    def _update_timer_interval(self) -> None:
        self.timer.setInterval(max(1, int(1000 / self.rate_spin.value())))

    def _update_views(self) -> None:
        self._update_state_view()
        self._update_memory_view()
        self._highlight_current_line()
        self._update_status()

    def _update_state_view(self) -> None:
        state = self.emulator.state if self.emulator else None
        self.acc_label.setText(f"ACC   {state.accumulator if state else 0}")
        self.pc_label.setText(f"PC    {state.pc if state else 0}")
        self.steps_label.setText(f"Steps {state.steps if state else 0}")

    def _update_memory_view(self) -> None:
        snapshot = self.emulator.state.memory_snapshot() if self.emulator else []
        self.memory_table.setRowCount(len(snapshot))
        for row, (addr, value) in enumerate(snapshot):
            self.memory_table.setItem(row, 0, QTableWidgetItem(str(addr)))
            value_item = QTableWidgetItem(str(value))
            if self.prev_memory.get(addr) != value:
                value_item.setBackground(QColor("#ffb86c"))
                value_item.setForeground(QColor("#1a1b26"))
            self.memory_table.setItem(row, 1, value_item)
        self.prev_memory = dict(snapshot)

    def _current_line(self) -> Optional[int]:
        if not self.emulator or self.source_dirty:
            return None
        stmt = self.program.statements[self.emulator.state.pc]
        return None if stmt.implicit else stmt.line_no

    def _highlight_current_line(self) -> None:
        selections = []
        line_no = self._current_line()
        if line_no is not None:
            block = self.editor.document().findBlockByNumber(line_no - 1)
            if block.isValid():
                cursor = QTextCursor(block)
                cursor.select(QTextCursor.SelectionType.LineUnderCursor)
                selection = QTextEdit.ExtraSelection()
                selection.cursor = cursor
                selection.format.setBackground(QColor("#fff2cc"))
                selection.format.setForeground(QColor("#1e1f29"))
                selections.append(selection)
        self.editor.setExtraSelections(selections)

    def _update_status(self) -> None:
        self.state_label.setText(self.run_state)
        line_no = self._current_line()
        if line_no is None:
            self.line_label.setText("Line: -")
        else:
            self.line_label.setText(f"Line: {line_no} | PC: {self.emulator.state.pc}")

    def set_state(self, state: str) -> None:
        self.run_state = state
        self._update_status()

    def log(self, message: str) -> None:
        self.log_output.appendPlainText(message)


def run_app(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv if argv is None else argv
    app = QApplication(argv)
    window = MainWindow()
    if len(argv) > 1:
        window.open_file_path(argv[1])
    window.show()
    return app.exec()


def main() -> None:
    sys.exit(run_app())
