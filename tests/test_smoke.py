from lockwise import __version__
from click.testing import CliRunner

from lockwise.cli.main import cli


def test_version():
    assert __version__ == "0.1.0"


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "reproducible dependency resolution" in result.output
    assert "lock" in result.output
    assert "check" in result.output


def test_cli_version():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
