"""Command line entry point."""

import logging
from pathlib import Path
from typing import Optional

import typer

from . import APP_NAME, __version__
from .app import App
from .config import get_config_path, load_config, write_default_config
from .errors import ConfigError, CryptNotesError
from .logger import configure_logging
from .storage import NoteFile, export_plaintext, load
from .ui import build_keymap, run_tui

logger = logging.getLogger(__name__)

app = typer.Typer(help=f"{APP_NAME} - an encrypted notes manager for the terminal.", add_completion=False)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"crypt-notes {__version__}")
        raise typer.Exit()


def _load_config_or_exit(config_path):
    try:
        return load_config(config_path)
    except ConfigError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Notes file to open."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.toml."),
    encrypt: Optional[bool] = typer.Option(
        None, "--encrypt/--no-encrypt", help="Ask for a password and encrypt a plaintext notes file."
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
) -> None:
    """Open the notes file in the terminal UI."""
    ctx.obj = config_path
    if ctx.invoked_subcommand is not None:
        return

    config = _load_config_or_exit(config_path)
    try:
        build_keymap(config.keybindings)
    except ConfigError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    try:
        configure_logging(log_level.upper() if log_level else config.log_level, config.log_file)
    except (ValueError, OSError) as exc:
        typer.secho(f"Cannot set up logging: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    path = file or config.notes_file
    note_file = NoteFile(path)
    try:
        notes_app = App.open(
            note_file,
            encryption_requested=config.encryption_enabled if encrypt is None else encrypt,
            confirm_delete=config.confirm_delete,
            max_unlock_attempts=config.max_unlock_attempts,
            export_path=config.export_file,
        )
    except CryptNotesError as exc:
        logger.error("Cannot open %s: %s", path, exc)
        typer.secho(f"Cannot open {path}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    logger.info("Starting with %s", path)
    try:
        code = run_tui(notes_app, config)
    finally:
        notes_app.close()
    if notes_app.status and notes_app.status_is_error:
        typer.secho(notes_app.status, fg=typer.colors.RED, err=True)
    logger.info("Exiting with code %d", code)
    raise typer.Exit(code=code)


@app.command()
def export(
    ctx: typer.Context,
    dest: Path = typer.Argument(..., help="Where to write the plaintext copy."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Notes file to export."),
) -> None:
    """Write a plaintext copy of all notes to DEST."""
    config = _load_config_or_exit(ctx.obj)
    path = file or config.notes_file
    note_file = NoteFile(path)
    try:
        password = None
        if note_file.is_encrypted_on_disk():
            typer.secho("The exported file will NOT be encrypted.", fg=typer.colors.YELLOW, err=True)
            password = typer.prompt("Password", hide_input=True)
        repository = load(path, password)
        written = export_plaintext(dest, repository)
    except CryptNotesError as exc:
        typer.secho(f"Export failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Exported {len(repository)} notes to {written}")


@app.command("init-config")
def init_config(ctx: typer.Context) -> None:
    """Write the default configuration file."""
    try:
        path = write_default_config(ctx.obj or get_config_path())
    except ConfigError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    typer.echo(f"Wrote {path}")


def run():
    app()
