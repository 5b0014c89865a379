from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from docgates import cli
from tests.doc_helpers import CONTEXT_REL, DocProject

runner = CliRunner()


def _invoke(*argv: str):
    return runner.invoke(cli.app, list(argv))


def test_validate_table_output_for_clean_project(project: DocProject) -> None:
    project.passing_pair()
    result = _invoke("validate", "--project-root", str(project.root))
    assert result.exit_code == 0, result.output
    assert result.output.startswith("Docs Quality Gates Validation")
    assert "DOC-01: PASS (0)" in result.output
    assert "TC-04: PASS (0)" in result.output


def test_validate_json_output_and_failure_exit(project: DocProject) -> None:
    project.write("docs/ARCH/SYSTEM.mdc", "# System\n")
    project.write_context(["docs/ARCH/SYSTEM.mdc"])
    result = _invoke("validate", "-r", str(project.root), "--json")
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert set(payload) == {"results", "contextPath", "projectRoot", "docStatus"}
    assert payload["docStatus"] == {"docs/ARCH/SYSTEM.mdc": "missing-breadcrumbs"}
    assert payload["results"]["DOC-01"][0]["gateId"] == "DOC-01"


def test_validate_table_lists_violation_details(project: DocProject) -> None:
    a = "docs/ARCH/ALPHA.mdc"
    b = "docs/ARCH/BETA.mdc"
    project.write_document(a, "Alpha", upstream=[b], downstream=[b])
    project.write_document(b, "Beta", upstream=[a], downstream=[a])
    project.write_context([a, b])
    project.write_passing_cases()
    result = _invoke("validate", "-r", str(project.root))
    assert result.exit_code == 0
    assert "DOC-04: WARN (1)" in result.output
    assert f"  - {a} — {a} → {b} → {a}" in result.output
    strict = _invoke("validate", "-r", str(project.root), "--strict")
    assert strict.exit_code == 1


def test_validate_missing_context_exits_with_two(tmp_path: Path) -> None:
    result = _invoke("validate", "-r", str(tmp_path))
    assert result.exit_code == 2
    assert "Context map not found" in result.output


def test_validate_reads_config_defaults(project: DocProject) -> None:
    project.passing_pair()
    project.write("maps/alt.mdc", project.read(CONTEXT_REL))
    project.path(CONTEXT_REL).unlink()
    project.write("docgates.toml", '[validate]\ncontext = "maps/alt.mdc"\n')
    result = _invoke("validate", "-r", str(project.root), "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["contextPath"].endswith("maps/alt.mdc")


def test_validate_with_log_persists_run(project: DocProject) -> None:
    project.passing_pair()
    result = _invoke("validate", "-r", str(project.root), "--log")
    assert result.exit_code == 0
    logs = _invoke("logs", "-r", str(project.root), "--json")
    [entry] = json.loads(logs.output)
    assert entry["mode"] == "manual"
    assert entry["exitCode"] == 0


def test_autofix_check_then_apply(project: DocProject) -> None:
    project.write("docs/ARCH/SYSTEM.mdc", "# System\n\n## Overview\n")
    project.write_context(["docs/ARCH/SYSTEM.mdc"])
    check = _invoke("autofix", "-r", str(project.root), "--check")
    assert check.exit_code == 0
    assert "Docs Quality Gates Autofix (dry run)" in check.output
    assert "modify docs/ARCH/SYSTEM.mdc: DOC-01: Breadcrumbs block inserted" in check.output
    assert project.read("docs/ARCH/SYSTEM.mdc") == "# System\n\n## Overview\n"

    applied = _invoke("autofix", "-r", str(project.root), "--json")
    assert applied.exit_code == 0
    payload = json.loads(applied.output)
    assert payload["status"] == "ok"
    assert payload["dryRun"] is False
    assert "> Breadcrumbs" in project.read("docs/ARCH/SYSTEM.mdc")


def test_revalidate_reports_segment_exit_code(project: DocProject) -> None:
    project.write("docs/ARCH/SYSTEM.mdc", "# System\n")
    project.write_context(["docs/ARCH/SYSTEM.mdc"])
    result = _invoke("revalidate", "-r", str(project.root), "--json")
    assert result.exit_code == 1
    event = json.loads(result.output)
    assert event["trigger"] == "manual"
    assert event["pipeline"]["state"]["manual"]["exitCode"] == 1

    bulk = _invoke("revalidate", "-r", str(project.root), "--mode", "bulk")
    assert "semiAuto: completed" in bulk.output
    assert "> Breadcrumbs" in project.read("docs/ARCH/SYSTEM.mdc")


def test_revalidate_rejects_unknown_mode(project: DocProject) -> None:
    result = _invoke("revalidate", "-r", str(project.root), "--mode", "auto")
    assert result.exit_code == 2


def test_logs_without_runs(tmp_path: Path) -> None:
    result = _invoke("logs", "-r", str(tmp_path))
    assert result.exit_code == 0
    assert "No run logs found." in result.output
