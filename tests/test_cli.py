from click.testing import CliRunner

from linked_views import cli


def test_help_lists_options():
    result = CliRunner().invoke(cli.main, ["--help"])

    assert result.exit_code == 0
    assert "--matrix" in result.output
    assert "--log-level" in result.output
    assert "--colormap" in result.output


def test_missing_points_file_is_rejected(tmp_path):
    result = CliRunner().invoke(cli.main, [str(tmp_path / "missing.csv")])

    assert result.exit_code != 0
    assert cli.get_cli_files()["points"] is None


def test_invalid_colormap_is_rejected():
    result = CliRunner().invoke(cli.main, ["--colormap", "rainbow"])

    assert result.exit_code != 0


def test_cli_defaults():
    options = cli.get_cli_options()

    assert options["id_field"] == "id"
    assert options["debug_events"] is False
