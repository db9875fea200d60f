import json

import pytest

from gatorfeed.cli import main
from gatorfeed.config import read_config


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


@pytest.fixture
def configured_home(home):
    (home / ".gatorconfig.json").write_text(
        json.dumps({"current_user_name": "", "connection_string": str(home / "gator.db")}),
        encoding="utf-8",
    )
    return home


def test_register_then_users(configured_home, capsys):
    assert main(["register", "alice"]) == 0
    assert "New user alice" in capsys.readouterr().out
    assert read_config(configured_home / ".gatorconfig.json").current_user_name == "alice"

    assert main(["users"]) == 0
    assert capsys.readouterr().out == "* alice (current)\n"


def test_no_arguments(configured_home, capsys):
    assert main([]) == 1
    assert capsys.readouterr().out == "ERROR: Not enough arguments provided\n"


def test_unknown_command(configured_home, capsys):
    assert main(["bogus"]) == 1
    assert capsys.readouterr().out == 'command "bogus" does not exist\n'


def test_command_error_exit_status(configured_home, capsys):
    assert main(["following"]) == 1
    assert capsys.readouterr().out.strip()


def test_missing_config(home, capsys):
    assert main(["users"]) == 1
    assert ".gatorconfig.json" in capsys.readouterr().out