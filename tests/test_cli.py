import logging

from click.testing import CliRunner

from cli import cli
from conftest import BASE, PREFIX, nav_html, sitemap_xml


def cli_args(tmp_path):
    return [
        "--sitemap-url", f"{BASE}/sitemap.xml",
        "--nav-url", f"{PREFIX}overview",
        "--prefix", PREFIX,
        "--base-url", BASE,
        "--output-root", str(tmp_path),
    ]


def test_cli_mirrors_and_exits_zero(tmp_path, fake_session):
    fake_session({
        f"{BASE}/sitemap.xml": sitemap_xml([f"{PREFIX}overview", f"{PREFIX}gone"]),
        f"{PREFIX}overview": nav_html([("Getting started", [("/en/docs/tool/overview", "Overview")])]),
        f"{PREFIX}overview.md": "# Overview\n",
    })

    result = CliRunner().invoke(cli, cli_args(tmp_path))

    assert result.exit_code == 0, result.output
    assert "Mirrored 1/2 documents" in result.output
    assert f"  - {PREFIX}gone" in result.output
    assert (tmp_path / "docs" / "getting-started" / "overview.md").read_text(encoding="utf-8") == "# Overview\n"
    assert (tmp_path / "README.md").exists()


def test_cli_exits_one_on_fatal_error(tmp_path, fake_session):
    fake_session({})

    result = CliRunner().invoke(cli, cli_args(tmp_path))

    assert result.exit_code == 1
    assert not (tmp_path / "README.md").exists()


def test_cli_logs_fatal_error_once(tmp_path, fake_session, caplog):
    fake_session({})

    result = CliRunner().invoke(cli, cli_args(tmp_path))

    assert result.exit_code == 1
    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert errors[0].name == "cli"
    assert "A fatal error occurred" in errors[0].getMessage()
