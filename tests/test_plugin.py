from __future__ import annotations

import sys
from pathlib import Path

import pytest

from threatgraph.enums import RiskSeverity
from threatgraph.plugin import (
    GET_INFO,
    CustomRule,
    PluginError,
    PluginRunner,
    load_custom_rules,
)


_RULE_SCRIPT = """
import json
import sys

args = sys.argv[1:]
payload = json.load(sys.stdin)
if args == ["-get-info"]:
    print(json.dumps({
        "risk_category": {"id": "custom-check", "title": "Custom Check", "cwe": 1008},
        "tags": ["Custom-Tag"],
    }))
elif args == ["-generate-risks"]:
    risks = []
    for asset_id in sorted(payload["technical_assets"]):
        risks.append({
            "category": "custom-check",
            "title": "Custom finding at " + asset_id,
            "synthetic_id": "custom-check@" + asset_id,
            "severity": "high",
            "exploitation_likelihood": "likely",
            "exploitation_impact": "high",
            "most_relevant_technical_asset": asset_id,
        })
    print(json.dumps(risks))
elif args[:1] == ["-explain-risk"]:
    print(json.dumps(["Explanation for " + args[1]]))
else:
    sys.stderr.write("unsupported mode\\n")
    raise SystemExit(2)
"""


def _write_script(path: Path, body: str) -> Path:
    _ = path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(0o755)
    return path


def test_runner_round_trips_json(tmp_path: Path) -> None:
    script = _write_script(
        tmp_path / "echo",
        "import json, sys\nprint(json.dumps({'args': sys.argv[1:], 'payload': json.load(sys.stdin)}))\n",
    )

    result = PluginRunner.load(script).run({"answer": 42}, "-mode", "x")
    assert result == {"args": ["-mode", "x"], "payload": {"answer": 42}}


def test_runner_reports_exit_status_and_stderr(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "fails", "import sys\nsys.stderr.write('kaputt')\nraise SystemExit(3)\n")

    with pytest.raises(PluginError) as excinfo:
        _ = PluginRunner.load(script).run(None, GET_INFO)
    assert "status 3" in str(excinfo.value)
    assert "kaputt" in str(excinfo.value)


def test_runner_rejects_malformed_json(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "garbage", "print('not json')\n")

    with pytest.raises(PluginError, match="malformed JSON"):
        _ = PluginRunner.load(script).run(None, GET_INFO)


def test_runner_times_out(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "slow", "import time\ntime.sleep(5)\n")

    with pytest.raises(PluginError, match="timed out"):
        _ = PluginRunner.load(script, timeout=0.5).run(None, GET_INFO)


def test_load_rejects_missing_and_non_regular_files(tmp_path: Path) -> None:
    with pytest.raises(PluginError, match="not accessible"):
        _ = PluginRunner.load(tmp_path / "absent")
    with pytest.raises(PluginError, match="not a regular file"):
        _ = PluginRunner.load(tmp_path)


def test_custom_rule_info(tmp_path: Path) -> None:
    rule = CustomRule.load(_write_script(tmp_path / "rule", _RULE_SCRIPT))

    assert rule.id == "custom-check"
    assert rule.category().title == "Custom Check"
    assert rule.category().cwe == 1008
    assert rule.supported_tags() == ["Custom-Tag"]


def test_custom_rule_generates_and_explains(tmp_path: Path, link, shop_data) -> None:
    rule = CustomRule.load(_write_script(tmp_path / "rule", _RULE_SCRIPT))
    model = link(shop_data)

    risks = rule.generate_risks(model)
    assert [risk.synthetic_id for risk in risks] == [
        "custom-check@customer-browser",
        "custom-check@customer-db",
        "custom-check@web-app",
    ]
    assert all(risk.severity == RiskSeverity.HIGH for risk in risks)
    assert risks[0].most_relevant_technical_asset_id == "customer-browser"
    assert rule.explain_risk(model, "custom-check@web-app") == ["Explanation for custom-check@web-app"]


def test_generate_risks_requires_a_list(tmp_path: Path, link, shop_data) -> None:
    script = _write_script(
        tmp_path / "rule",
        "import json, sys\n"
        "_ = sys.stdin.read()\n"
        "if sys.argv[1] == '-get-info':\n"
        "    print(json.dumps({'risk_category': {'id': 'odd', 'title': 'Odd'}}))\n"
        "else:\n"
        "    print(json.dumps({'not': 'a list'}))\n",
    )
    rule = CustomRule.load(script)

    with pytest.raises(PluginError, match="JSON list"):
        _ = rule.generate_risks(link(shop_data))


def test_load_custom_rules_skips_broken_plugins(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    good = _write_script(tmp_path / "good", _RULE_SCRIPT)
    broken = _write_script(tmp_path / "broken", "raise SystemExit(1)\n")

    rules = load_custom_rules([str(good), str(broken), ""])
    assert list(rules) == ["custom-check"]
    assert "broken" in caplog.text


def test_runner_rejects_output_that_is_not_utf8(tmp_path: Path) -> None:
    script = _write_script(tmp_path / "binary", "import sys\nsys.stdout.buffer.write(b'\\xff\\xfe')\n")

    with pytest.raises(PluginError, match="not UTF-8"):
        _ = PluginRunner.load(script).run(None, GET_INFO)


def test_runner_keeps_undecodable_stderr_readable(tmp_path: Path) -> None:
    script = _write_script(
        tmp_path / "fails", "import sys\nsys.stderr.buffer.write(b'bad \\xff byte')\nraise SystemExit(4)\n"
    )

    with pytest.raises(PluginError) as excinfo:
        _ = PluginRunner.load(script).run(None, GET_INFO)
    assert "status 4" in str(excinfo.value)
    assert "bad" in str(excinfo.value)


def test_load_custom_rules_skips_plugin_with_binary_output(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    binary = _write_script(tmp_path / "binary", "import sys\nsys.stdout.buffer.write(b'\\xff\\xfe')\n")

    assert load_custom_rules([str(binary)]) == {}
    assert "binary" in caplog.text
