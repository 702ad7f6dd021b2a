import json

import pytest
from click.testing import CliRunner

from chainseal import cli as cli_module
from chainseal.cli import cli
from chainseal.exceptions import TimestampError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def run(runner, chain_file):
    def invoke(*args, mode="content", sign=False, **kwargs):
        options = ["--file", str(chain_file), "--mode", mode, "--sign" if sign else "--no-sign"]
        return runner.invoke(cli, [*options, *args], **kwargs)
    return invoke


def test_view_creates_genesis(run, chain_file):
    result = run("view")
    assert result.exit_code == 0
    assert "Block #0 (" in result.output
    assert "): Genesis [genesis]" in result.output
    assert chain_file.exists()


def test_add_and_view(run):
    assert run("add", "pay Alice").exit_code == 0
    result = run("add", "pay Bob")
    assert "Block added. New Length: 3" in result.output

    result = run("view")
    assert ": pay Alice [confirmed]" in result.output
    assert ": pay Bob [confirmed]" in result.output


def test_modify_is_detected(run):
    run("add", "pay Alice")
    run("add", "pay Bob")
    result = run("modify", "1", "pay Mallory")
    assert result.exit_code == 0
    assert "Block #1 modified." in result.output

    result = run("view")
    assert ": pay Mallory [invalid]" in result.output
    assert ": pay Bob [above invalid]" in result.output


def test_verify_exit_status(run):
    run("add", "pay Alice")
    result = run("verify")
    assert result.exit_code == 0
    assert "VERIFIED: 2 blocks" in result.output

    run("modify", "1", "pay Mallory")
    result = run("verify")
    assert result.exit_code == 1
    assert "[invalid] (hash)" in result.output
    assert "chain broken at block #1" in result.output


def test_remove(run):
    run("add", "a")
    run("add", "b")
    result = run("remove", "1")
    assert result.exit_code == 0
    assert "Block #1 removed." in result.output
    assert ": b [invalid]" in run("view").output


def test_invalid_index(run, chain_file):
    run("add", "a")
    before = chain_file.read_text()

    result = run("remove", "5")
    assert result.exit_code == 1
    assert "Invalid index." in result.output

    result = run("modify", "9", "x")
    assert result.exit_code == 1
    assert chain_file.read_text() == before


def test_malformed_snapshot_aborts(run, chain_file):
    chain_file.write_text('[{"data": "Genesis"}]')
    result = run("view")
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert chain_file.read_text() == '[{"data": "Genesis"}]'


def test_undecodable_snapshot_aborts(run, chain_file):
    chain_file.write_bytes(b'[{"previousHash": "\xff\xfe"}]')
    result = run("view")
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "UTF-8" in result.output


def test_export(run, tmp_path):
    run("add", "pay Alice")
    result = run("export")
    transcript = json.loads(result.output)
    assert transcript["verdicts"] == ["genesis", "confirmed"]

    output = tmp_path / "chain.jcs"
    result = run("export", "--canonical", "-o", str(output))
    assert result.exit_code == 0
    assert [r["data"] for r in json.loads(output.read_text())] == ["Genesis", "pay Alice"]


def test_menu(run):
    result = run("menu", input="2\npay Alice\n1\n4\n1\npay Mallory\n1\n7\n5\n")
    assert result.exit_code == 0
    assert "Block added. New Length: 2" in result.output
    assert ": pay Alice [confirmed]" in result.output
    assert "Block #1 modified." in result.output
    assert ": pay Mallory [invalid]" in result.output
    assert "Invalid choice." in result.output


def test_mode_from_environment(runner, chain_file):
    env = {"CHAINSEAL_FILE": str(chain_file), "CHAINSEAL_MODE": "content", "CHAINSEAL_SIGN": "0"}
    assert runner.invoke(cli, ["add", "pay Alice"], env=env).exit_code == 0
    result = runner.invoke(cli, ["view"], env=env)
    assert ": pay Alice [confirmed]" in result.output


def test_command_line_overrides_environment(runner, chain_file, tmp_path, monkeypatch):
    def no_authority(url, timeout):
        raise AssertionError("signing was disabled on the command line")

    monkeypatch.setattr(cli_module, "TimestampClient", no_authority)
    env = {"CHAINSEAL_FILE": str(tmp_path / "other.json"), "CHAINSEAL_MODE": "signed", "CHAINSEAL_SIGN": "1"}
    result = runner.invoke(cli, ["--file", str(chain_file), "--no-sign", "add", "pay Alice"], env=env)

    assert result.exit_code == 0, result.output
    assert not (tmp_path / "other.json").exists()
    assert "signature" not in json.loads(chain_file.read_text())[1]


def test_bad_environment(runner, chain_file):
    result = runner.invoke(cli, ["--file", str(chain_file), "view"], env={"CHAINSEAL_TIMEOUT": "soon"})
    assert result.exit_code == 1
    assert "CHAINSEAL_TIMEOUT" in result.output


class TestSignedMode:

    def test_signed_add(self, run, monkeypatch, authority):
        monkeypatch.setattr(cli_module, "TimestampClient", lambda url, timeout: authority)
        key = ["--authority-key", authority.public_key_hex]

        result = run(*key, "add", "pay Alice", mode="signed", sign=True)
        assert result.exit_code == 0, result.output

        result = run(*key, "view", mode="signed", sign=True)
        assert ": pay Alice [confirmed]" in result.output

    def test_wrong_authority_key(self, run, monkeypatch, authority, other_authority):
        monkeypatch.setattr(cli_module, "TimestampClient", lambda url, timeout: authority)
        run("--authority-key", authority.public_key_hex, "add", "pay Alice", mode="signed", sign=True)

        result = run("--authority-key", other_authority.public_key_hex, "verify", mode="signed", sign=True)
        assert result.exit_code == 1
        assert "[invalid] (signature)" in result.output

    def test_signing_failure(self, run, monkeypatch, chain_file, authority):
        async def unreachable(digest):
            raise TimestampError("authority unreachable")

        monkeypatch.setattr(cli_module, "TimestampClient", lambda url, timeout: unreachable)
        key = ["--authority-key", authority.public_key_hex]
        run(*key, "view", mode="signed", sign=True)
        before = chain_file.read_text()

        result = run(*key, "add", "pay Alice", mode="signed", sign=True)
        assert result.exit_code == 1
        assert "block not added: authority unreachable" in result.output
        assert chain_file.read_text() == before

    def test_bad_authority_key(self, run):
        result = run("--authority-key", "zz", "view", mode="signed", sign=True)
        assert result.exit_code == 1
        assert "Authority key" in result.output

    def test_signed_content_mode(self, run, monkeypatch, chain_file, authority, other_authority):
        monkeypatch.setattr(cli_module, "TimestampClient", lambda url, timeout: authority)
        result = run("--authority-key", authority.public_key_hex, "add", "pay Alice", sign=True)
        assert result.exit_code == 0, result.output
        assert json.loads(chain_file.read_text())[1]["signature"]

        result = run("--authority-key", authority.public_key_hex, "verify", sign=True)
        assert result.exit_code == 0
        assert ": pay Alice [confirmed]" in result.output

        result = run("--authority-key", other_authority.public_key_hex, "verify", sign=True)
        assert result.exit_code == 1
        assert "[invalid] (signature)" in result.output
