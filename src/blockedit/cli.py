from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from blockedit.logger import capture_logs, configure_logging
from blockedit.models import ApplyReport
from blockedit.patch import (
    EditApplier,
    apply_edit_blocks,
    build_gateway,
    parse_edit_blocks,
)
from blockedit.settings import Settings, find_settings_file, load_settings


def _read_input(patch_file: str) -> str:
    if patch_file == "-":
        return sys.stdin.read()
    return Path(patch_file).read_text(encoding="utf-8")


def _load(root: Path, config: Optional[Path]) -> Settings:
    path = config or find_settings_file(root)
    return load_settings(str(path)) if path is not None else Settings()


def _reports_table(reports: List[ApplyReport]) -> Table:
    table = Table(show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Applied")
    table.add_column("Error", overflow="fold")
    for report in reports:
        block = report.original_edit_block
        applied = Text("yes", style="green") if report.applied else Text("no", style="red")
        table.add_row(
            str(block.sequence_number),
            block.file_path,
            block.edit_type.value,
            applied,
            report.error,
        )
    return table


@click.group()
def main() -> None:
    """Apply fuzzy-matched edit blocks to a project."""


@main.command()
@click.argument("patch_file", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Project root the edit block paths are relative to.",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (YAML or JSON5). Defaults to blockedit.yml in the root.",
)
@click.option("--check/--no-check", default=None, help="Override check_edits.")
@click.option("--json", "as_json", is_flag=True, help="Print reports as JSON.")
@click.option("--show-log", is_flag=True, help="Print captured log records.")
def apply(
    patch_file: str,
    root: Path,
    config: Optional[Path],
    check: Optional[bool],
    as_json: bool,
    show_log: bool,
) -> None:
    """Apply the edit blocks found in PATCH_FILE ('-' for stdin)."""
    settings = _load(root, config)
    if check is not None:
        settings = settings.model_copy(update={"check_edits": check})
    log_buffer = capture_logs() if show_log else None
    configure_logging(settings.logging)

    blocks = parse_edit_blocks(_read_input(patch_file))
    applier = EditApplier(root, settings.matching)
    reports = apply_edit_blocks(blocks, applier, build_gateway(root, settings))

    console = Console()
    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in reports], indent=2))
    else:
        console.print(_reports_table(reports))
    if log_buffer is not None:
        for record in log_buffer.records():
            console.print(Text(f"{record.level} {record.logger}: {record.text}"))

    if not all(r.applied for r in reports):
        sys.exit(1)


@main.command()
@click.argument("patch_file", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
def parse(patch_file: str) -> None:
    """Print the edit blocks found in PATCH_FILE as JSON."""
    blocks = parse_edit_blocks(_read_input(patch_file))
    click.echo(
        json.dumps([b.model_dump(mode="json", exclude_none=True) for b in blocks], indent=2)
    )


if __name__ == "__main__":
    main()
