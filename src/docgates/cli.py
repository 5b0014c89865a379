from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from docgates.analysis.gates import exit_code_for, gate_status
from docgates.analysis.model import (
    GATE_IDS,
    RunMode,
    ValidationOutcome,
    Violation,
    results_from_payload,
)
from docgates.config import (
    TomlTable,
    as_bool,
    autofix_defaults,
    merge_payload,
    normalize_name_list,
    pipeline_defaults,
    validate_defaults,
)
from docgates.exceptions import DocgatesError, InfrastructureError
from docgates.json_types import JSONObject
from docgates.runtime import json_io
from docgates.schema import AutofixSummaryDTO, ValidationPayloadDTO, normalize
from docgates.tooling.autofix import AutofixSummary, run_autofix
from docgates.tooling.pipeline import PipelineConfig, RevalidationPipeline
from docgates.tooling.quality_gates import default_log_store, run_quality_gates, validate_project

app = typer.Typer(add_completion=False, help="Quality gates for a documentation DAG.")

_TABLE_TITLE = "Docs Quality Gates Validation"


def _split_csv_entries(entries: List[str]) -> list[str]:
    merged: list[str] = []
    for entry in entries:
        merged.extend(part.strip() for part in entry.split(",") if part.strip())
    return merged


def _violation_detail(violation: Violation) -> str | None:
    if violation.cycle:
        return " → ".join(violation.cycle)
    return violation.link or violation.layer or violation.heading


def render_validation_table(outcome: ValidationOutcome) -> str:
    lines = [
        _TABLE_TITLE,
        f"Project root: {outcome.project_root}",
        f"Context: {outcome.context_path}",
        "",
    ]
    for gate_id in GATE_IDS:
        violations = outcome.results.get(gate_id, [])
        lines.append(f"{gate_id}: {gate_status(gate_id, violations)} ({len(violations)})")
        for violation in violations:
            detail = _violation_detail(violation)
            lines.append(f"  - {violation.path} — {detail}" if detail else f"  - {violation.path}")
            lines.append(f"    {violation.message}")
    return "\n".join(lines)


def render_autofix_table(summary: AutofixSummary) -> str:
    title = "Docs Quality Gates Autofix" + (" (dry run)" if summary.dry_run else "")
    lines = [title, f"Status: {summary.status}", f"Operations: {len(summary.operations)}"]
    for operation in summary.operations:
        if operation.get("type") == "rename":
            lines.append(f"  rename {operation['from']} -> {operation['to']} ({operation['reason']})")
        else:
            actions = operation.get("actions") or []
            joined = "; ".join(str(action) for action in actions) if isinstance(actions, list) else ""
            lines.append(f"  modify {operation.get('path')}: {joined}")
    for label, items in (("Warnings", summary.warnings), ("Errors", summary.errors)):
        if items:
            lines.append(f"{label}:")
            lines.extend(f"  - {item}" for item in items)
    return "\n".join(lines)


def _fail(message: str, code: int = 2) -> typer.Exit:
    typer.secho(message, err=True, fg=typer.colors.RED)
    return typer.Exit(code=code)


def _pipeline_config(
    project_root: Path,
    config: Optional[Path],
    overrides: TomlTable,
) -> PipelineConfig:
    section = merge_payload(overrides, pipeline_defaults(project_root, config))
    return PipelineConfig.from_section(section)


@app.command("validate")
def validate(
    context: Optional[Path] = typer.Option(None, "--context", "-c", help="Context map path."),
    project_root: Path = typer.Option(Path("."), "--project-root", "-r"),
    tests: List[str] = typer.Option(
        [], "--tests", "-t", help="Test case roots (repeatable, comma separated)."
    ),
    json_output: bool = typer.Option(False, "--json/--table"),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--no-strict", help="Treat warnings as failures."
    ),
    log: bool = typer.Option(False, "--log/--no-log", help="Persist a manual run log."),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Run every quality gate against the documents named by the context map."""
    root = project_root.resolve()
    settings = merge_payload(
        {
            "context": str(context) if context is not None else None,
            "tests": _split_csv_entries(tests) or None,
            "strict": strict,
        },
        validate_defaults(root, config),
    )
    context_value = settings.get("context")
    test_roots = normalize_name_list(settings.get("tests"))
    categories = normalize_name_list(settings.get("test_categories"))
    strict_mode = as_bool(settings.get("strict"))
    gate_kwargs = {"test_roots": test_roots}
    if categories:
        gate_kwargs["categories"] = categories
    try:
        if log:
            store = default_log_store(root)
            latest = store.load_latest_run_log()
            previous = None
            if latest is not None:
                payload = latest[1].get("payload")
                if isinstance(payload, dict):
                    previous = results_from_payload(payload.get("results"))
            run = run_quality_gates(
                root,
                mode="manual",
                context=context_value,
                previous=previous,
                strict=strict_mode,
                log_store=store,
                **gate_kwargs,
            )
            outcome = run.outcome
        else:
            outcome = validate_project(root, context_value, **gate_kwargs)
    except InfrastructureError as exc:
        raise _fail(str(exc), code=exc.exit_code)
    exit_code = exit_code_for(outcome.results, strict=strict_mode)
    if json_output:
        typer.echo(json_io.dump_json_pretty(normalize(ValidationPayloadDTO, outcome.to_payload())))
    else:
        typer.echo(render_validation_table(outcome))
    raise typer.Exit(code=exit_code)


@app.command("autofix")
def autofix(
    context: Optional[Path] = typer.Option(None, "--context", "-c", help="Context map path."),
    project_root: Path = typer.Option(Path("."), "--project-root", "-r"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "--check", help="Report planned changes without writing."
    ),
    json_output: bool = typer.Option(False, "--json/--table"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Rewrite documents (renames included) so the format and link gates pass."""
    root = project_root.resolve()
    settings = merge_payload({"dry_run": dry_run or None}, autofix_defaults(root, config))
    context_value = str(context) if context is not None else validate_defaults(root, config).get("context")
    try:
        summary = run_autofix(root, context_value, dry_run=as_bool(settings.get("dry_run")))
    except (DocgatesError, OSError) as exc:
        raise _fail(f"autofix failed: {exc}", code=2)
    if json_output:
        typer.echo(json_io.dump_json_pretty(normalize(AutofixSummaryDTO, summary.to_payload())))
    else:
        typer.echo(render_autofix_table(summary))
    raise typer.Exit(code=1 if summary.errors else 0)


@app.command("revalidate")
def revalidate(
    context: Optional[Path] = typer.Option(None, "--context", "-c"),
    project_root: Path = typer.Option(Path("."), "--project-root", "-r"),
    mode: str = typer.Option("manual", "--mode", help="manual|bulk"),
    json_output: bool = typer.Option(False, "--json/--table"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Run one pipeline refresh and print the resulting update event."""
    if mode not in {"manual", "bulk"}:
        raise typer.BadParameter("mode must be manual or bulk", param_hint="--mode")
    run_mode: RunMode = "bulk" if mode == "bulk" else "manual"
    root = project_root.resolve()
    pipeline = RevalidationPipeline(
        root,
        lambda _event: None,
        context=str(context) if context is not None else validate_defaults(root, config).get("context"),
        config=_pipeline_config(root, config, {}),
    )
    try:
        event = asyncio.run(pipeline.revalidate(run_mode))
    finally:
        pipeline.dispose()
    segment = pipeline.segment("semiAuto" if run_mode == "bulk" else "manual")
    if json_output:
        typer.echo(json_io.dump_json_pretty(event))
    else:
        typer.echo(_render_event(event))
    if segment.status != "completed" or segment.exit_code is None:
        raise typer.Exit(code=2)
    raise typer.Exit(code=segment.exit_code)


def _render_event(event: JSONObject) -> str:
    lines = [f"{event.get('type')} ({event.get('trigger')}) at {event.get('timestamp')}"]
    if event.get("message"):
        lines.append(str(event["message"]))
    if event.get("error"):
        lines.append(f"error: {event['error']}")
    pipeline = event.get("pipeline")
    state = pipeline.get("state") if isinstance(pipeline, dict) else None
    if isinstance(state, dict):
        for name in ("auto", "semiAuto", "manual"):
            segment = state.get(name)
            if isinstance(segment, dict):
                exit_code = segment.get("exitCode")
                suffix = f" exit={exit_code}" if exit_code is not None else ""
                lines.append(f"  {name}: {segment.get('status')}{suffix}")
    return "\n".join(lines)


@app.command("watch")
def watch(
    context: Optional[Path] = typer.Option(None, "--context", "-c"),
    project_root: Path = typer.Option(Path("."), "--project-root", "-r"),
    rules_dir: Optional[str] = typer.Option(None, "--rules-dir"),
    debounce_ms: Optional[int] = typer.Option(None, "--debounce-ms"),
    duration: float = typer.Option(
        0.0, "--duration", help="Stop after this many seconds (0 runs until interrupted)."
    ),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Watch the rule documents and revalidate on change, printing one JSON event per line."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root = project_root.resolve()
    pipeline = RevalidationPipeline(
        root,
        lambda event: typer.echo(json_io.dump_json_line(event)),
        context=str(context) if context is not None else validate_defaults(root, config).get("context"),
        config=_pipeline_config(
            root, config, {"rules_dir": rules_dir, "debounce_ms": debounce_ms}
        ),
    )

    async def _watch() -> None:
        await pipeline.start()
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
        await pipeline.wait_idle()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        typer.echo("stopped", err=True)
    finally:
        pipeline.dispose()


@app.command("logs")
def logs(
    project_root: Path = typer.Option(Path("."), "--project-root", "-r"),
    json_output: bool = typer.Option(False, "--json/--table"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """List persisted run logs, newest first."""
    root = project_root.resolve()
    log_dir = pipeline_defaults(root, config).get("log_dir")
    store = default_log_store(root, log_dir if isinstance(log_dir, str) else None)
    descriptors = [descriptor.to_payload() for descriptor in store.list_run_logs()]
    if json_output:
        typer.echo(json_io.dump_json_pretty(descriptors))
        return
    if not descriptors:
        typer.echo("No run logs found.")
        return
    for item in descriptors:
        typer.echo(f"{item['timestamp']}  {item['mode']:<6}  exit={item['exitCode']}  {item['name']}")

