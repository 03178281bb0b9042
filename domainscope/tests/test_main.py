"""
Tests for the command-line interface.
"""

import json
from pathlib import Path

from unittest.mock import patch

import pytest

from domainscope.main import main
from domainscope.utils.report_formatter import ReportFormatter


class TestCli:
    """End-to-end CLI runs."""

    def test_no_arguments_prints_help(self, capsys) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_recommend_text(self, capsys) -> None:
        assert main(["--recommend", "track tasks and todo items"]) == 0
        out = capsys.readouterr().out
        assert "RECOMMENDED DOMAIN: task" in out
        assert "Closest pattern: task-management" in out

    def test_recommend_json(self, capsys) -> None:
        assert main(["--recommend", "track tasks", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["domain"] == "task"
        assert data["patterns"][0]["name"] == "task-management"

    def test_deep_json(self, capsys, tmp_path: Path, make_domain) -> None:
        make_domain([f"step{chr(ord('a') + i)}" for i in range(11)])
        code = main(["--deep", "domain", "--base-path", str(tmp_path), "--json", "--min-severity", "low"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        summary = data["deep_analysis"]["summary"]
        assert summary["total_components"] == 11
        assert summary["total_issues"] == len(data["deep_analysis"]["issues"])

    def test_deep_text(self, capsys, tmp_path: Path, make_domain) -> None:
        make_domain(["alpha", "beta"])
        assert main(["--deep", "domain", "--base-path", str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert "DOMAIN: domain" in out
        assert "DEEP ANALYSIS" in out

    def test_skip_rule(self, capsys, tmp_path: Path, make_domain) -> None:
        make_domain([f"step{chr(ord('a') + i)}" for i in range(11)])
        args = ["--deep", "domain", "--base-path", str(tmp_path), "--json", "--skip-rule", "TooManyCommands"]
        assert main(args) == 0
        issues = json.loads(capsys.readouterr().out)["deep_analysis"]["issues"]
        assert all(i["issue_type"] != "TooManyCommands" for i in issues)

    def test_plan(self, capsys, tmp_path: Path, make_domain) -> None:
        make_domain([f"step{chr(ord('a') + i)}" for i in range(11)])
        main(["--deep", "domain", "--base-path", str(tmp_path), "--json"])
        issues = json.loads(capsys.readouterr().out)["deep_analysis"]["issues"]
        issue_id = next(i["id"] for i in issues if i["issue_type"] == "TooManyCommands")

        assert main(["--plan", "domain", "--issue", issue_id, "--base-path", str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert issue_id in out
        assert "CHECKLIST" in out

    def test_plan_requires_issue(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit):
            main(["--plan", "domain", "--base-path", str(tmp_path)])

    def test_missing_domain_is_an_error(self, capsys, tmp_path: Path) -> None:
        assert main(["--analyze", "missing", "--base-path", str(tmp_path)]) == 2
        assert "does not exist" in capsys.readouterr().err

    def test_traversal_is_an_error(self, capsys, tmp_path: Path) -> None:
        base = tmp_path / "base"
        base.mkdir()
        assert main(["--analyze", "..", "--base-path", str(base)]) == 2
        assert "escapes base directory" in capsys.readouterr().err

    def test_text_output_uses_default_formatter(self, capsys) -> None:
        formatter = ReportFormatter(width=20)
        with patch("domainscope.main.get_default_formatter", return_value=formatter) as factory:
            assert main(["--recommend", "track tasks"]) == 0
        factory.assert_called_once_with()
        assert "=" * 20 in capsys.readouterr().out.splitlines()
