"""Form Overlay CLI entry point."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from formoverlay.config import get_settings
from formoverlay.logging_config import configure_logging
from formoverlay.model.field import FormField
from formoverlay.pdf.filler import fill_document
from formoverlay.pdf.validation import validate_form_values
from formoverlay.pdf.writer import OverlayDocument, PdfFillError
from formoverlay.state.templates import JsonTemplateStore, TemplateStoreError

app = typer.Typer(
    name="formoverlay",
    help="Place fields on a PDF layout and fill them with values",
    no_args_is_help=True,
)
templates_app = typer.Typer(help="Saved template management")
app.add_typer(templates_app, name="templates")

console = Console()


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Form Overlay command line."""
    settings = get_settings()
    configure_logging("DEBUG" if debug else settings.log_level, settings.log_json)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        console.print(f"[red]Cannot read JSON from {path}: {exc}[/red]")
        raise typer.Exit(1)


def _load_fields(path: Path) -> list[FormField]:
    """Accept either a bare field array or a template object with a fields key."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("fields", [])
    try:
        return [FormField.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as exc:
        console.print(f"[red]Invalid field definition in {path}: {exc}[/red]")
        raise typer.Exit(1)


def _load_values(path: Path) -> dict[str, str]:
    data = _read_json(path)
    if not isinstance(data, dict):
        console.print(f"[red]Values file must contain a JSON object: {path}[/red]")
        raise typer.Exit(1)
    return {str(key): "" if value is None else str(value) for key, value in data.items()}


def _report_issues(fields: list[FormField], values: dict[str, str]) -> bool:
    issues = validate_form_values(fields, values)
    for issue in issues:
        console.print(f"[red]{issue}[/red]")
    return not issues


@app.command()
def validate(
    fields_path: Path = typer.Option(..., "--fields", "-f", help="Field or template JSON"),
    values_path: Path = typer.Option(..., "--values", "-v", help="JSON object of field id to value"),
):
    """Check values against their field types without filling."""
    fields = _load_fields(fields_path)
    values = _load_values(values_path)
    if not _report_issues(fields, values):
        raise typer.Exit(1)
    console.print(f"[green]All {len(fields)} field(s) valid[/green]")


@app.command()
def fill(
    pdf_path: Path = typer.Argument(..., help="Source PDF"),
    fields_path: Path = typer.Option(..., "--fields", "-f", help="Field or template JSON"),
    values_path: Path = typer.Option(..., "--values", "-v", help="JSON object of field id to value"),
    output_path: Optional[Path] = typer.Option(None, "--output", "-o", help="Output PDF"),
):
    """Validate values and render them into a copy of the PDF."""
    settings = get_settings()
    fields = _load_fields(fields_path)
    values = _load_values(values_path)
    if not _report_issues(fields, values):
        console.print("[red]Fill refused: fix the values above first[/red]")
        raise typer.Exit(1)

    output = output_path or pdf_path.with_name(f"filled-{pdf_path.name}")
    try:
        document = OverlayDocument.from_path(pdf_path, font_name=settings.font_name)
        result = fill_document(document, fields, values, settings=settings)
        output.write_bytes(result.pdf_bytes)
    except (PdfFillError, OSError) as exc:
        console.print(f"[red]Fill failed: {exc}[/red]")
        raise typer.Exit(1)

    for warning in result.warnings:
        console.print(f"[yellow]{warning.field_label}: {warning.message}[/yellow]")
    console.print(
        f"[green]Filled {len(result.filled_field_ids)} field(s)[/green] -> [cyan]{output}[/cyan]"
    )


@app.command()
def gui(pdf_path: Optional[Path] = typer.Argument(None, help="PDF to open on start")):
    """Start the desktop editor."""
    from PySide6.QtWidgets import QApplication

    from formoverlay.ui.main_window import MainWindow

    qt_app = QApplication.instance() or QApplication([])
    window = MainWindow(get_settings())
    window.show()
    if pdf_path is not None:
        window.open_pdf(str(pdf_path))
    raise typer.Exit(qt_app.exec())


def _store(path: Optional[Path]) -> JsonTemplateStore:
    return JsonTemplateStore(path or get_settings().templates_path)


def _load_templates(store: JsonTemplateStore):
    try:
        return store.load()
    except TemplateStoreError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


@templates_app.command("list")
def list_templates(
    store_path: Optional[Path] = typer.Option(None, "--store", help="Template JSON file"),
):
    """List saved templates."""
    templates = _load_templates(_store(store_path))
    if not templates:
        console.print("[yellow]No templates saved yet[/yellow]")
        return

    table = Table(title="Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Fields", justify="right")
    table.add_column("Updated")
    for template in templates:
        table.add_row(
            template.id,
            template.name,
            str(len(template.fields)),
            template.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@templates_app.command("show")
def show_template(
    template_id: str = typer.Argument(..., help="Template id"),
    store_path: Optional[Path] = typer.Option(None, "--store", help="Template JSON file"),
):
    """Print a template as JSON."""
    for template in _load_templates(_store(store_path)):
        if template.id == template_id:
            console.print_json(data=template.to_dict())
            return
    console.print(f"[red]Template not found: {template_id}[/red]")
    raise typer.Exit(1)


@templates_app.command("delete")
def delete_template(
    template_id: str = typer.Argument(..., help="Template id"),
    store_path: Optional[Path] = typer.Option(None, "--store", help="Template JSON file"),
):
    """Delete a saved template."""
    store = _store(store_path)
    templates = _load_templates(store)
    remaining = [item for item in templates if item.id != template_id]
    if len(remaining) == len(templates):
        console.print(f"[red]Template not found: {template_id}[/red]")
        raise typer.Exit(1)
    try:
        store.save(remaining)
    except TemplateStoreError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted template {template_id}[/green]")


if __name__ == "__main__":
    app()
