"""Autofix engine: rewrite governed documents until the format and link gates pass.

The steps run in a fixed order for every document (rename plan, metadata
repair, link normalization, heading renumbering, table of contents, scope
scaffolding), then cycles are broken across the rewritten set and the context
manifest is updated for renamed files. Nothing touches disk until every step
has run; renames are persisted before content writes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from docgates.analysis.breadcrumbs import (
    find_breadcrumbs,
    format_links,
    render_breadcrumbs,
    split_links,
)
from docgates.analysis.context_map import parse_context_map, resolve_context_path
from docgates.analysis.cycles import find_cycles, last_edge
from docgates.analysis.graph import build_graph
from docgates.analysis.markdown import (
    TOC_HEADING,
    HeadingCounter,
    body_start,
    ensure_trailing_newline,
    extract_headings,
    find_toc,
    first_h1,
    format_number,
    join_lines,
    slugify_heading,
    split_lines,
    toc_bounds,
)
from docgates.analysis.model import ContextEntry
from docgates.analysis.naming import (
    autofix_layer,
    is_naming_exempt,
    normalize_layer,
    propose_name,
    with_numeric_suffix,
)
from docgates.analysis.scope import IN_SCOPE_TITLE, OUT_OF_SCOPE_TITLE, scope_report
from docgates.exceptions import ContextReadError, DocgatesError, EmptyContextMapError
from docgates.json_types import JSONObject
from docgates.paths import relative_posix
from docgates.runtime.file_access import ProjectFileAccess

logger = logging.getLogger(__name__)

RENAME_REASON = "DOC-07 naming rules"
MAX_SUFFIX_ATTEMPTS = 999
TBD_IN_SCOPE = "- TBD: describe what this document covers"
TBD_OUT_OF_SCOPE = "- TBD: describe what this document does not cover"
TOC_INSERTED = "DOC-06: Table of contents inserted"

_UPSTREAM_LINE_RE = re.compile(r"^>\s*Upstream\s*:", re.IGNORECASE)
_DOWNSTREAM_LINE_RE = re.compile(r"^>\s*Downstream\s*:", re.IGNORECASE)


@dataclass(frozen=True)
class RenamePlanEntry:
    source: str
    target: str
    reason: str = RENAME_REASON

    def to_payload(self) -> JSONObject:
        return {"from": self.source, "to": self.target, "reason": self.reason}


@dataclass
class DocumentRecord:
    path: str
    target: str
    original: str
    lines: list[str]
    actions: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        text = join_lines(self.lines)
        return ensure_trailing_newline(text) if self.actions else text

    @property
    def changed(self) -> bool:
        return self.content != self.original

    def note(self, action: str) -> None:
        if action not in self.actions:
            self.actions.append(action)


@dataclass
class AutofixSummary:
    project_root: str
    context_path: str
    dry_run: bool
    timestamp: str
    operations: list[JSONObject] = field(default_factory=list)
    rename_map: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "failed" if self.errors else "ok"

    def to_payload(self) -> JSONObject:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "projectRoot": self.project_root,
            "contextPath": self.context_path,
            "dryRun": self.dry_run,
            "operations": list(self.operations),
            "renameMap": dict(self.rename_map),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


# Rename plan


def build_rename_plan(
    records: Sequence[DocumentRecord],
    *,
    reserved: set[str],
    exists_fn=None,
) -> tuple[list[RenamePlanEntry], list[str]]:
    """Propose DOC-07 compliant names; targets are unique and never clobber a file."""
    exists = exists_fn or (lambda _path: False)
    used = set(reserved)
    plan: list[RenamePlanEntry] = []
    errors: list[str] = []
    for record in records:
        if is_naming_exempt(record.path):
            continue
        block = find_breadcrumbs(record.lines)
        heading = first_h1(record.lines)
        proposed = propose_name(
            record.path,
            block.layer if block else None,
            heading.title if heading else None,
        )
        if proposed is None or proposed == record.path:
            continue
        candidate = proposed
        attempt = 1
        while candidate in used or exists(candidate):
            if attempt > MAX_SUFFIX_ATTEMPTS:
                errors.append(f"{record.path}: could not find a free name near {proposed}")
                candidate = None
                break
            candidate = with_numeric_suffix(proposed, attempt)
            attempt += 1
        if candidate is None:
            continue
        used.add(candidate)
        plan.append(RenamePlanEntry(source=record.path, target=candidate))
    return plan, errors


# Per-document fixes


def repair_metadata(record: DocumentRecord) -> None:
    lines = record.lines
    block = find_breadcrumbs(lines)
    if block is None:
        layer = autofix_layer(record.target)
        canonical = render_breadcrumbs(layer, (), ())
        heading = first_h1(lines)
        position = heading.index + 1 if heading else body_start(lines)
        inserted = ["", *canonical] if heading else list(canonical)
        if position >= len(lines) or lines[position].strip():
            inserted.append("")
        lines[position:position] = inserted
        record.note("DOC-01: Breadcrumbs block inserted")
        return
    layer = autofix_layer(record.target, block.layer)
    if block.complete and not block.empty and normalize_layer(block.layer) == block.layer:
        return
    canonical = render_breadcrumbs(layer, block.upstream, block.downstream)
    if lines[block.start:block.end] == canonical:
        return
    lines[block.start:block.end] = canonical
    if not block.complete or block.empty:
        record.note("DOC-01: Breadcrumbs block rebuilt")
    if normalize_layer(block.layer) != block.layer:
        record.note(f"DOC-02: Layer set to {layer}")


def _rewrite_link_line(lines: list[str], start: int, end: int, pattern: re.Pattern[str], label: str, value: str) -> bool:
    for index in range(start, end):
        if pattern.match(lines[index].strip()):
            replacement = f"> {label}: {value}"
            if lines[index] == replacement:
                return False
            lines[index] = replacement
            return True
    return False


def normalize_links(
    record: DocumentRecord,
    *,
    rename_map: Mapping[str, str],
    known: set[str],
    exists_fn,
    drop: Mapping[str, set[str]] | None = None,
) -> None:
    """Apply renames, drop unresolvable or removed links, dedupe, default to N/A."""
    block = find_breadcrumbs(record.lines)
    if block is None:
        return
    removals = drop or {}
    changed = False
    for label, pattern, raw in (
        ("Upstream", _UPSTREAM_LINE_RE, block.raw_upstream),
        ("Downstream", _DOWNSTREAM_LINE_RE, block.raw_downstream),
    ):
        kept: list[str] = []
        for link in split_links(raw):
            mapped = rename_map.get(link, link)
            if mapped in removals.get(label, set()):
                continue
            if mapped not in known and not exists_fn(mapped):
                continue
            if mapped not in kept:
                kept.append(mapped)
        value = format_links(kept)
        if value != raw.strip():
            changed = _rewrite_link_line(record.lines, block.start, block.end, pattern, label, value) or changed
    if changed:
        record.note("DOC-03: Links normalized")


def renumber_headings(record: DocumentRecord) -> None:
    lines = record.lines
    counter = HeadingCounter()
    changed = False
    for heading in extract_headings(lines):
        if heading.level < 2 or heading.is_toc:
            continue
        number = counter.advance(heading.level)
        replacement = f"{'#' * heading.level} {format_number(number)} {heading.title}".rstrip()
        if lines[heading.index] != replacement:
            lines[heading.index] = replacement
            changed = True
    if changed:
        record.note("DOC-05: Headings renumbered")


def _toc_block(lines: list[str]) -> list[str]:
    block = [TOC_HEADING, ""]
    for heading in extract_headings(lines):
        if heading.level < 2 or heading.is_toc:
            continue
        indent = "  " * (heading.level - 2)
        block.append(f"{indent}- [{heading.text}](#{slugify_heading(heading.text)})")
    return block


def regenerate_toc(record: DocumentRecord) -> None:
    lines = record.lines
    block = _toc_block(lines)
    if len(block) == 2:
        return
    toc = find_toc(extract_headings(lines))
    if toc is not None:
        start, end = toc_bounds(lines, toc)
        if lines[start:end] == block:
            return
        lines[start:end] = block
        if TOC_INSERTED not in record.actions:
            record.note("DOC-06: Table of contents regenerated")
        return
    breadcrumbs = find_breadcrumbs(lines)
    heading = first_h1(lines)
    if breadcrumbs is not None:
        position = breadcrumbs.end
    elif heading is not None:
        position = heading.index + 1
    else:
        position = body_start(lines)
    inserted = ["", *block]
    if position < len(lines) and lines[position].strip():
        inserted.append("")
    lines[position:position] = inserted
    record.note(TOC_INSERTED)


def _append_section(lines: list[str], title: str, bullet: str) -> None:
    while lines and not lines[-1].strip():
        lines.pop()
    lines.extend(["", f"## {title}", "", bullet])


def scaffold_scope(record: DocumentRecord) -> bool:
    lines = record.lines
    report = scope_report(lines)
    if report.satisfied:
        return False
    # Bottom-up so earlier indices stay valid.
    pending: list[tuple[int, str, str]] = []
    for section, title, bullet in (
        (report.in_scope, IN_SCOPE_TITLE, TBD_IN_SCOPE),
        (report.out_of_scope, OUT_OF_SCOPE_TITLE, TBD_OUT_OF_SCOPE),
    ):
        if section is None:
            _append_section(lines, title, bullet)
        elif not section.has_items:
            pending.append((section.heading_index, title, bullet))
    for heading_index, _title, bullet in sorted(pending, reverse=True):
        lines[heading_index + 1:heading_index + 1] = ["", bullet]
    record.note("DOC-08: Scope sections scaffolded")
    return True


# Cycle breaking


def break_cycles(
    records: Mapping[str, DocumentRecord],
    entries: Sequence[ContextEntry],
    *,
    rename_map: Mapping[str, str],
    known: set[str],
    exists_fn,
) -> list[tuple[str, str]]:
    """Re-derive the graph from rewritten content and drop each cycle's last edge."""
    removed: list[tuple[str, str]] = []
    mapped_entries = [
        ContextEntry(entry.category, rename_map.get(entry.path, entry.path), entry.description)
        for entry in entries
    ]
    for _ in range(len(records) + 1):
        contents = {path: join_lines(record.lines) for path, record in records.items()}
        graph = build_graph(mapped_entries, contents)
        cycles = find_cycles(graph.downstream_adjacency())
        if not cycles:
            break
        for cycle in cycles:
            edge = last_edge(cycle)
            if edge is None:
                continue
            source, target = edge
            removed.append(edge)
            source_record = records.get(source)
            target_record = records.get(target)
            if source_record is not None:
                normalize_links(
                    source_record,
                    rename_map={},
                    known=known,
                    exists_fn=exists_fn,
                    drop={"Downstream": {target}},
                )
                source_record.note(f"DOC-04: Cycle broken ({source} → {target})")
            if target_record is not None:
                normalize_links(
                    target_record,
                    rename_map={},
                    known=known,
                    exists_fn=exists_fn,
                    drop={"Upstream": {source}},
                )
    return removed


# Manifest propagation


def propagate_renames(manifest: str, rename_map: Mapping[str, str]) -> str:
    updated = manifest
    for source, target in rename_map.items():
        pattern = re.compile(rf"(?<![\w./-])(\./)?{re.escape(source)}(?![\w-]|\.[\w-])")
        updated = pattern.sub(lambda match, new=target: f"{match.group(1) or ''}{new}", updated)
    return updated


# Orchestration


def run_autofix(
    project_root: Path,
    context: str | Path | None = None,
    *,
    dry_run: bool = False,
    access: ProjectFileAccess | None = None,
    now: datetime | None = None,
) -> AutofixSummary:
    root = project_root.resolve()
    files = access or ProjectFileAccess(root)
    context_file = resolve_context_path(root, context)
    context_rel = relative_posix(context_file, root=root)
    summary = AutofixSummary(
        project_root=str(root),
        context_path=str(context_file),
        dry_run=dry_run,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )
    try:
        manifest = files.read_text(context_rel)
    except (OSError, UnicodeError) as exc:
        raise ContextReadError(context_file, str(exc)) from exc
    entries = parse_context_map(manifest)
    if not entries:
        raise EmptyContextMapError(context_file)

    records: list[DocumentRecord] = []
    seen: set[str] = set()
    for entry in entries:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        try:
            text = files.read_text(entry.path)
        except (OSError, UnicodeError, DocgatesError) as exc:
            summary.warnings.append(f"{entry.path}: skipped, unable to read ({exc})")
            continue
        records.append(
            DocumentRecord(path=entry.path, target=entry.path, original=text, lines=split_lines(text))
        )

    plan, plan_errors = build_rename_plan(records, reserved=seen, exists_fn=files.exists)
    summary.errors.extend(plan_errors)
    rename_map = {item.source: item.target for item in plan}
    summary.rename_map = dict(rename_map)
    for record in records:
        record.target = rename_map.get(record.path, record.path)
    known = {record.target for record in records}

    for record in records:
        repair_metadata(record)
        normalize_links(record, rename_map=rename_map, known=known, exists_fn=files.exists)
        renumber_headings(record)
        regenerate_toc(record)
        if scaffold_scope(record):
            renumber_headings(record)
            regenerate_toc(record)

    by_target = {record.target: record for record in records}
    removed = break_cycles(
        by_target, entries, rename_map=rename_map, known=known, exists_fn=files.exists
    )
    if removed:
        logger.info("autofix removed %d cycle edge(s)", len(removed))

    new_manifest = propagate_renames(manifest, rename_map)

    for item in plan:
        summary.operations.append({"type": "rename", **item.to_payload()})
    for record in records:
        if record.changed:
            summary.operations.append(
                {"type": "modify", "path": record.target, "actions": list(record.actions)}
            )
    if new_manifest != manifest:
        summary.operations.append(
            {"type": "modify", "path": context_rel, "actions": ["Context map paths updated"]}
        )

    if dry_run or summary.errors:
        return summary
    _persist(summary, files, plan, records, context_rel, manifest, new_manifest)
    return summary


def _persist(
    summary: AutofixSummary,
    files: ProjectFileAccess,
    plan: Sequence[RenamePlanEntry],
    records: Sequence[DocumentRecord],
    context_rel: str,
    manifest: str,
    new_manifest: str,
) -> None:
    """Renames first, then changed documents, then the manifest; stop at the first failure."""
    try:
        for item in plan:
            files.rename(item.source, item.target)
        for record in records:
            if record.changed:
                files.write_text(record.target, record.content)
        if new_manifest != manifest:
            files.write_text(context_rel, new_manifest)
    except (OSError, DocgatesError) as exc:
        summary.errors.append(f"persistence failed, documents may be partially updated: {exc}")
        logger.warning("autofix persistence failed: %s", exc)
