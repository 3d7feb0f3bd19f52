from __future__ import annotations

import json
import sys
from pathlib import Path

from click.testing import CliRunner

from threatgraph import __version__
from threatgraph.cli import cli


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_validate_prints_summary(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["validate", str(write_model(shop_data))])

    assert result.exit_code == 0, result.output
    assert "Validation successful!" in result.output
    assert "Technical Assets: 3" in result.output
    assert "Communication Links: 2" in result.output


def test_validate_reports_link_errors(write_model, shop_data) -> None:
    shop_data["technical_assets"]["Customer DB"]["technology"] = "quantum-db"
    result = CliRunner().invoke(cli, ["validate", str(write_model(shop_data))])

    assert result.exit_code == 1
    assert "quantum-db" in result.output


def test_analyze_prints_severity_counts(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["analyze", str(write_model(shop_data))])

    assert result.exit_code == 0, result.output
    assert "Analysis complete!" in result.output
    assert "Elevated:" in result.output
    assert "still at risk" in result.output
    assert "Highest open severity:" in result.output


def test_analyze_json_output(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["analyze", str(write_model(shop_data)), "--json", "--skip-rules", "missing-vault"])

    assert result.exit_code == 0, result.output
    risks = json.loads(result.output)
    ids = [risk["synthetic_id"] for risk in risks]
    assert "cross-site-scripting@web-app" in ids
    assert not any(risk_id.startswith("missing-vault@") for risk_id in ids)
    assert all("category" in risk for risk in risks)


def test_analyze_fails_on_orphaned_tracking(write_model, shop_data) -> None:
    shop_data["risk_tracking"] = {"xml-external-entity@nowhere": {"status": "mitigated"}}
    path = write_model(shop_data)

    failed = CliRunner().invoke(cli, ["analyze", str(path)])
    assert failed.exit_code == 1
    assert "xml-external-entity@nowhere" in failed.output

    tolerated = CliRunner().invoke(cli, ["analyze", str(path), "--ignore-orphaned"])
    assert tolerated.exit_code == 0, tolerated.output


def test_analyze_reads_config_file(tmp_path: Path, write_model, shop_data) -> None:
    model_path = write_model(shop_data)
    config_path = tmp_path / "config.yaml"
    _ = config_path.write_text(
        f"input_file: {model_path}\nskip_risk_rules: cross-site-scripting\n",
        encoding="utf-8",
    )

    result = CliRunner().invoke(cli, ["analyze", "--config", str(config_path), "--json"])
    assert result.exit_code == 0, result.output
    ids = [risk["synthetic_id"] for risk in json.loads(result.output)]
    assert "cross-site-scripting@web-app" not in ids
    assert "sql-nosql-injection@web-app@web-app>database-access" in ids


def test_analyze_with_custom_rule(tmp_path: Path, write_model, shop_data) -> None:
    plugin = tmp_path / "custom-rule"
    _ = plugin.write_text(
        f"#!{sys.executable}\n"
        "import json, sys\n"
        "_ = sys.stdin.read()\n"
        "if sys.argv[1] == '-get-info':\n"
        "    print(json.dumps({'risk_category': {'id': 'custom-check', 'title': 'Custom Check'}}))\n"
        "else:\n"
        "    print(json.dumps([{'category': 'custom-check', 'title': 'Custom', "
        "'synthetic_id': 'custom-check@web-app', 'most_relevant_technical_asset': 'web-app'}]))\n",
        encoding="utf-8",
    )
    plugin.chmod(0o755)

    result = CliRunner().invoke(
        cli, ["analyze", str(write_model(shop_data)), "--custom-rule", str(plugin), "--json"]
    )
    assert result.exit_code == 0, result.output
    ids = [risk["synthetic_id"] for risk in json.loads(result.output)]
    assert "custom-check@web-app" in ids


def test_explain_risk(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["explain-risk", str(write_model(shop_data)), "cross-site-scripting@web-app"])

    assert result.exit_code == 0, result.output
    assert "Cross-Site Scripting (XSS) risk at Web App" in result.output
    assert "CWE-79" in result.output


def test_explain_unknown_risk(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["explain-risk", str(write_model(shop_data)), "nothing@here"])

    assert result.exit_code == 1
    assert "No explanation available" in result.output


def test_list_rules() -> None:
    result = CliRunner().invoke(cli, ["list-rules"])

    assert result.exit_code == 0
    assert "cross-site-scripting --> Cross-Site Scripting (XSS)" in result.output
    assert len(result.output.strip().splitlines()) == 22


def test_list_technologies() -> None:
    result = CliRunner().invoke(cli, ["list-technologies"])

    assert result.exit_code == 0
    assert "database --> Database" in result.output


def test_analyze_rejects_invalid_plugin_timeout(write_model, shop_data) -> None:
    result = CliRunner().invoke(cli, ["analyze", str(write_model(shop_data)), "--plugin-timeout=-1"])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Invalid option" in result.output
