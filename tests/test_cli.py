"""Tests for the command line entry point."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from crypt_notes import __version__, storage
from crypt_notes.cli import app
from crypt_notes.crypto import KdfParams
from crypt_notes.repository import NoteRepository

PASSWORD = "correct horse battery"


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config.toml"


@pytest.fixture()
def repo() -> NoteRepository:
    repository = NoteRepository()
    repository.create("exported", "body")
    return repository


class TestCli:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_config(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_path), "init-config"])
        assert result.exit_code == 0
        assert config_path.exists()
        again = runner.invoke(app, ["--config", str(config_path), "init-config"])
        assert again.exit_code == 2

    def test_bad_config_exit_code(self, runner: CliRunner, config_path: Path) -> None:
        config_path.write_text("[behavior]\nmax_unlock_attempts = 'many'\n")
        result = runner.invoke(app, ["--config", str(config_path)])
        assert result.exit_code == 2

    def test_bad_keybinding_exit_code(self, runner: CliRunner, config_path: Path) -> None:
        config_path.write_text("[keybindings]\nquit = ['Hyper+q']\n")
        result = runner.invoke(app, ["--config", str(config_path)])
        assert result.exit_code == 2

    def test_export_plaintext(self, runner: CliRunner, config_path: Path, tmp_path: Path, repo: NoteRepository) -> None:
        notes = tmp_path / "notes.json"
        storage.save(notes, repo)
        dest = tmp_path / "out.json"
        result = runner.invoke(app, ["--config", str(config_path), "export", str(dest), "--file", str(notes)])
        assert result.exit_code == 0
        assert [n.title for n in storage.load(dest).list()] == ["exported"]

    def test_export_encrypted(
        self, runner: CliRunner, config_path: Path, tmp_path: Path, repo: NoteRepository, fast_kdf: KdfParams
    ) -> None:
        notes = tmp_path / "notes.json"
        storage.save(notes, repo, PASSWORD, fast_kdf)
        dest = tmp_path / "out.json"
        args = ["--config", str(config_path), "export", str(dest), "--file", str(notes)]

        wrong = runner.invoke(app, args, input="nope nope\n")
        assert wrong.exit_code == 1
        assert not dest.exists()

        result = runner.invoke(app, args, input=PASSWORD + "\n")
        assert result.exit_code == 0
        assert [n.title for n in storage.load(dest).list()] == ["exported"]

    def test_malformed_notes_file_exit_code(
        self, runner: CliRunner, config_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
        notes = tmp_path / "notes.json"
        notes.write_text("[" * 100000 + "]" * 100000)
        result = runner.invoke(app, ["--config", str(config_path), "--file", str(notes)])
        assert result.exit_code == 1
        assert not isinstance(result.exception, RecursionError)
