"""Main application window for PDF preview, field placement, and filling."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QActionGroup, QKeySequence, QPixmap
from PySide6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QComboBox,
    QFileDialog,
    QInputDialog,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QToolBar,
)
import structlog

from formoverlay.config import Settings
from formoverlay.model.coords import clamp_scale, step_scale
from formoverlay.model.document import PdfDocument
from formoverlay.model.field import FieldType
from formoverlay.pdf.filler import fill_session
from formoverlay.pdf.layout import ReportlabMetrics
from formoverlay.pdf.loader import PdfLoadError, load_pdf
from formoverlay.pdf.renderer import PdfRenderError, render_page_image
from formoverlay.pdf.validation import ValidationFailedError
from formoverlay.pdf.writer import OverlayDocument, PdfFillError
from formoverlay.state.placement import EnterAddMode, EventQueue, ExitAddMode, PlacementStateMachine
from formoverlay.state.session import DocumentSession, FillInProgressError, TemplateError
from formoverlay.state.templates import JsonTemplateStore, TemplateStoreError
from formoverlay.viewer.canvas import PdfCanvas

logger = structlog.get_logger(__name__)

_LABEL_COLUMN = 0
_TYPE_COLUMN = 1
_PAGE_COLUMN = 2
_VALUE_COLUMN = 3


class MainWindow(QMainWindow):
    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.setWindowTitle("Form Overlay")
        self.resize(1400, 900)

        self._settings = settings
        self._document: PdfDocument | None = None
        self._store = JsonTemplateStore(settings.templates_path)
        self._queue = EventQueue()
        self._session = self._new_session()
        self._machine = PlacementStateMachine(self._session, settings.handle_tolerance)
        self._current_page = 1
        self._zoom = clamp_scale(settings.default_zoom)
        self._syncing_table = False

        self.page_list = QListWidget()
        self.page_list.currentRowChanged.connect(self._on_page_selected)

        self.canvas = PdfCanvas(self._session, self._machine, self._queue)
        self.canvas.fields_changed.connect(self._on_canvas_fields_changed)
        self.canvas.field_selection_changed.connect(self._on_canvas_selection_changed)

        self.scroll_area = QScrollArea()
        self.scroll_area.setWidgetResizable(False)
        self.scroll_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.scroll_area.setWidget(self.canvas)

        self.field_table = QTableWidget(0, 4)
        self.field_table.setHorizontalHeaderLabels(["Label", "Type", "Page", "Value"])
        self.field_table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.field_table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.field_table.itemChanged.connect(self._on_table_item_changed)
        self.field_table.currentCellChanged.connect(self._on_table_row_changed)

        splitter = QSplitter()
        splitter.addWidget(self.page_list)
        splitter.addWidget(self.scroll_area)
        splitter.addWidget(self.field_table)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 4)
        splitter.setStretchFactor(2, 2)
        self.setCentralWidget(splitter)

        self._build_toolbar()
        self.statusBar().showMessage("Ready")

    def _new_session(self) -> DocumentSession:
        try:
            return DocumentSession(store=self._store)
        except TemplateStoreError as exc:
            QMessageBox.warning(self, "Templates Unavailable", str(exc))
            return DocumentSession()

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        open_action = QAction("Open PDF", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_pdf)
        toolbar.addAction(open_action)

        self._fill_action = QAction("Fill && Save", self)
        self._fill_action.setShortcut(QKeySequence.StandardKey.Save)
        self._fill_action.triggered.connect(self.fill_and_save)
        toolbar.addAction(self._fill_action)

        delete_action = QAction("Delete Field", self)
        delete_action.triggered.connect(self.delete_selected_field)
        toolbar.addAction(delete_action)

        copy_action = QAction("Copy Field", self)
        copy_action.setShortcut("Ctrl+D")
        copy_action.triggered.connect(self.copy_selected_field)
        toolbar.addAction(copy_action)

        toolbar.addSeparator()

        prev_action = QAction("Previous", self)
        prev_action.triggered.connect(self.show_previous_page)
        toolbar.addAction(prev_action)

        next_action = QAction("Next", self)
        next_action.triggered.connect(self.show_next_page)
        toolbar.addAction(next_action)

        zoom_out_action = QAction("Zoom -", self)
        zoom_out_action.setShortcut(QKeySequence.StandardKey.ZoomOut)
        zoom_out_action.triggered.connect(lambda: self._change_zoom(-self._settings.zoom_step))
        toolbar.addAction(zoom_out_action)

        zoom_in_action = QAction("Zoom +", self)
        zoom_in_action.setShortcut(QKeySequence.StandardKey.ZoomIn)
        zoom_in_action.triggered.connect(lambda: self._change_zoom(self._settings.zoom_step))
        toolbar.addAction(zoom_in_action)

        toolbar.addSeparator()

        mode_group = QActionGroup(self)
        mode_group.setExclusive(True)

        self._pointer_action = QAction("Pointer", self)
        self._pointer_action.setCheckable(True)
        self._pointer_action.setChecked(True)
        self._pointer_action.triggered.connect(lambda: self._set_mode(None))
        mode_group.addAction(self._pointer_action)
        toolbar.addAction(self._pointer_action)

        for field_type in FieldType:
            action = QAction(f"Add {field_type.value.title()}", self)
            action.setCheckable(True)
            action.triggered.connect(lambda _=False, kind=field_type: self._set_mode(kind))
            mode_group.addAction(action)
            toolbar.addAction(action)

        toolbar.addSeparator()

        self._type_combo = QComboBox()
        for field_type in FieldType:
            self._type_combo.addItem(field_type.value.title(), field_type)
        self._type_combo.setEnabled(False)
        self._type_combo.currentIndexChanged.connect(self._on_type_changed)
        toolbar.addWidget(self._type_combo)

        self._multiline_check = QCheckBox("Multiline")
        self._multiline_check.setEnabled(False)
        self._multiline_check.toggled.connect(self._on_multiline_toggled)
        toolbar.addWidget(self._multiline_check)

        toolbar.addSeparator()

        save_template_action = QAction("Save Template", self)
        save_template_action.triggered.connect(self.save_template)
        toolbar.addAction(save_template_action)

        load_template_action = QAction("Load Template", self)
        load_template_action.triggered.connect(self.load_template)
        toolbar.addAction(load_template_action)

        delete_template_action = QAction("Delete Template", self)
        delete_template_action.triggered.connect(self.delete_template)
        toolbar.addAction(delete_template_action)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._close_document()
        super().closeEvent(event)

    def open_pdf(self, file_path: str | None = None) -> None:
        if not file_path:
            file_path, _ = QFileDialog.getOpenFileName(
                self,
                "Open PDF",
                str(Path.home()),
                "PDF Files (*.pdf)",
            )
        if not file_path:
            return

        self._close_document()
        try:
            self._document = load_pdf(file_path)
        except PdfLoadError as exc:
            QMessageBox.critical(self, "Open Failed", str(exc))
            return

        self._reset_session()
        self._current_page = 1
        self._populate_page_list()
        self._render_current_page()
        self.statusBar().showMessage(f"Loaded: {file_path}")

    def fill_and_save(self) -> None:
        if self._document is None:
            QMessageBox.information(self, "No Document", "Open a PDF first.")
            return
        if len(self._session.registry) == 0:
            QMessageBox.information(self, "No Fields", "Please add at least one field to the PDF.")
            return

        self._fill_action.setEnabled(False)
        try:
            overlay = OverlayDocument.from_bytes(self._document.data, self._settings.font_name)
            result = fill_session(
                self._session,
                overlay,
                metrics=ReportlabMetrics(self._settings.font_name),
                settings=self._settings,
            )
        except ValidationFailedError as exc:
            QMessageBox.warning(
                self, "Validation Failed", "\n".join(str(issue) for issue in exc.issues)
            )
            return
        except (PdfFillError, FillInProgressError) as exc:
            QMessageBox.critical(self, "Fill Failed", str(exc))
            return
        finally:
            self._fill_action.setEnabled(True)

        output_path, _ = QFileDialog.getSaveFileName(
            self,
            "Save Filled PDF",
            str(self._document.path.with_name(f"filled-{self._document.name}")),
            "PDF Files (*.pdf)",
        )
        if not output_path:
            return
        try:
            Path(output_path).write_bytes(result.pdf_bytes)
        except OSError as exc:
            QMessageBox.critical(self, "Save Failed", str(exc))
            return

        message = f"Saved: {output_path}"
        if result.warnings:
            message += " | " + "; ".join(
                f"{warning.field_label}: {warning.message}" for warning in result.warnings
            )
        self.statusBar().showMessage(message)

    def save_template(self) -> None:
        name, accepted = QInputDialog.getText(self, "Save Template", "Template name:")
        if not accepted:
            return
        description, accepted = QInputDialog.getText(
            self, "Save Template", "Description (optional):"
        )
        if not accepted:
            return
        try:
            template = self._session.save_template(name, description)
        except (TemplateError, TemplateStoreError) as exc:
            QMessageBox.warning(self, "Save Template", str(exc))
            return
        self.statusBar().showMessage(f"Template saved: {template.name}")

    def load_template(self) -> None:
        template_id = self._choose_template("Load Template")
        if template_id is None:
            return
        template = self._session.load_template(template_id)
        self._refresh_field_table()
        self.canvas.update()
        self.statusBar().showMessage(f"Template loaded: {template.name}")

    def delete_template(self) -> None:
        template_id = self._choose_template("Delete Template")
        if template_id is None:
            return
        answer = QMessageBox.question(
            self, "Delete Template", "Are you sure you want to delete this template?"
        )
        if answer != QMessageBox.StandardButton.Yes:
            return
        try:
            self._session.delete_template(template_id)
        except TemplateStoreError as exc:
            QMessageBox.warning(self, "Delete Template", str(exc))
            return
        self.statusBar().showMessage("Template deleted")

    def show_previous_page(self) -> None:
        if self._document is None or self._current_page <= 1:
            return
        self.page_list.setCurrentRow(self._current_page - 2)

    def show_next_page(self) -> None:
        if self._document is None or self._current_page >= self._document.page_count:
            return
        self.page_list.setCurrentRow(self._current_page)

    def delete_selected_field(self) -> None:
        if self._session.delete_selected_field():
            self._on_canvas_fields_changed()
            self._on_canvas_selection_changed(None)
            self.canvas.update()
            self.statusBar().showMessage("Deleted field.")
        else:
            self.statusBar().showMessage("No selected field to delete.")

    def copy_selected_field(self) -> None:
        duplicate = self._session.duplicate_selected_field()
        if duplicate is None:
            self.statusBar().showMessage("No selected field to copy.")
            return
        self._on_canvas_fields_changed()
        self._on_canvas_selection_changed(duplicate)
        self.canvas.update()
        self.statusBar().showMessage(f"Copied field: {duplicate.label}")

    def _choose_template(self, title: str) -> str | None:
        templates = self._session.templates
        if not templates:
            QMessageBox.information(self, title, "No templates saved yet.")
            return None
        names = [
            f"{item.name} ({len(item.fields)} fields, updated {item.updated_at:%Y-%m-%d})"
            for item in templates
        ]
        choice, accepted = QInputDialog.getItem(self, title, "Template:", names, 0, False)
        if not accepted:
            return None
        return templates[names.index(choice)].id

    def _set_mode(self, mode: FieldType | None) -> None:
        self.canvas.post(ExitAddMode() if mode is None else EnterAddMode(mode))
        label = "Pointer mode" if mode is None else f"Placement mode: {mode.value}"
        self.statusBar().showMessage(label)

    def _change_zoom(self, delta: float) -> None:
        self._zoom = step_scale(self._zoom, delta)
        self._render_current_page()

    def _populate_page_list(self) -> None:
        self.page_list.clear()
        if self._document is None:
            return

        for page_number in range(1, self._document.page_count + 1):
            self.page_list.addItem(QListWidgetItem(f"Page {page_number}"))

        self.page_list.setCurrentRow(0)

    def _on_page_selected(self, row: int) -> None:
        if self._document is None or row < 0:
            return

        self._current_page = row + 1
        self._render_current_page()

    def _on_canvas_fields_changed(self) -> None:
        if self._machine.add_mode is None and not self._pointer_action.isChecked():
            self._pointer_action.setChecked(True)
        self._refresh_field_table()
        stats = self._session.field_stats()
        page_count = len(self._session.get_page_fields(self._current_page))
        self.statusBar().showMessage(
            f"Page {self._current_page}: {page_count} field(s) | "
            f"{stats.filled}/{stats.total} filled ({stats.completion_percentage}%)"
        )

    def _on_canvas_selection_changed(self, field) -> None:
        self._type_combo.setEnabled(field is not None)
        self._multiline_check.setEnabled(field is not None)
        if field is None:
            self.field_table.clearSelection()
            return
        self._type_combo.blockSignals(True)
        self._type_combo.setCurrentIndex(self._type_combo.findData(field.field_type))
        self._type_combo.blockSignals(False)
        self._multiline_check.blockSignals(True)
        self._multiline_check.setChecked(field.multiline)
        self._multiline_check.blockSignals(False)
        for row, item in enumerate(self._session.all_fields()):
            if item.id == field.id:
                self.field_table.selectRow(row)
                break

    def _on_type_changed(self, index: int) -> None:
        field_id = self._session.selected_id
        if field_id is None or index < 0:
            return
        self._session.edit_field(field_id, field_type=self._type_combo.itemData(index))
        self._refresh_field_table()

    def _on_multiline_toggled(self, checked: bool) -> None:
        field_id = self._session.selected_id
        if field_id is None:
            return
        self._session.edit_field(field_id, multiline=checked)

    def _on_table_row_changed(self, row: int, column: int, prev_row: int, prev_column: int) -> None:
        del column, prev_row, prev_column
        if self._syncing_table or row < 0:
            return
        fields = self._session.all_fields()
        if row >= len(fields):
            return
        field = fields[row]
        self._session.select(field.id)
        self._on_canvas_selection_changed(field)
        if field.page_number != self._current_page and self._document is not None:
            if field.page_number <= self._document.page_count:
                self.page_list.setCurrentRow(field.page_number - 1)
        self.canvas.update()

    def _on_table_item_changed(self, item: QTableWidgetItem) -> None:
        if self._syncing_table:
            return
        field_id = item.data(Qt.ItemDataRole.UserRole)
        if field_id is None:
            return
        if item.column() == _VALUE_COLUMN:
            self._session.set_value(field_id, item.text())
        elif item.column() == _LABEL_COLUMN:
            self._session.edit_field(field_id, label=item.text())
            self._refresh_field_table()
        self.canvas.update()

    def _refresh_field_table(self) -> None:
        self._syncing_table = True
        try:
            fields = self._session.all_fields()
            self.field_table.setRowCount(len(fields))
            for row, field in enumerate(fields):
                cells = {
                    _LABEL_COLUMN: field.label,
                    _TYPE_COLUMN: field.field_type.value,
                    _PAGE_COLUMN: str(field.page_number),
                    _VALUE_COLUMN: self._session.form_values.get(field.id, ""),
                }
                for column, text in cells.items():
                    cell = QTableWidgetItem(text)
                    cell.setData(Qt.ItemDataRole.UserRole, field.id)
                    if column in (_TYPE_COLUMN, _PAGE_COLUMN):
                        cell.setFlags(cell.flags() & ~Qt.ItemFlag.ItemIsEditable)
                    self.field_table.setItem(row, column, cell)
        finally:
            self._syncing_table = False

    def _render_current_page(self) -> None:
        if self._document is None:
            self.canvas.clear_page()
            return

        try:
            image = render_page_image(self._document.handle, self._current_page, scale=self._zoom)
        except PdfRenderError as exc:
            QMessageBox.critical(self, "Render Failed", str(exc))
            return

        self.canvas.set_page(
            pixmap=QPixmap.fromImage(image),
            page_number=self._current_page,
            scale=self._zoom,
        )
        self.statusBar().showMessage(
            f"Page {self._current_page}/{self._document.page_count} at {round(self._zoom * 100)}%"
        )

    def _reset_session(self) -> None:
        self._session = self._new_session()
        self._queue = EventQueue()
        self._machine = PlacementStateMachine(self._session, self._settings.handle_tolerance)
        self.canvas.bind_session(self._session, self._machine, self._queue)
        self._refresh_field_table()

    def _close_document(self) -> None:
        if self._document is not None:
            self._document.close()
            self._document = None
            logger.info("pdf.closed")
        self.page_list.clear()
        self.canvas.clear_page()
