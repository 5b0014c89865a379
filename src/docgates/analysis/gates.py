"""The fixed battery of quality gates.

Every evaluator is a pure function of a :class:`GateContext` returning fresh
:class:`Violation` records; none of them mutates the graph or another gate's
output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Sequence
from urllib.parse import unquote

from docgates.analysis.casefiles import (
    DEFAULT_CATEGORIES,
    DOCUMENTATION_THRESHOLD,
    CaseCorpus,
    case_name_error,
    documentation_coverage,
    has_dependency_pattern,
    has_setup_and_teardown,
    uses_fixtures,
)
from docgates.analysis.cycles import find_cycles
from docgates.analysis.graph import DocumentGraph
from docgates.analysis.markdown import (
    HeadingCounter,
    anchor_links,
    extract_headings,
    find_toc,
    first_h1,
    format_number,
    parse_front_matter,
    section_bounds,
    slugify_heading,
    split_lines,
)
from docgates.analysis.model import (
    ERROR_GATE_IDS,
    GATE_IDS,
    VALID_LAYERS,
    QualityGateResults,
    Violation,
    empty_results,
)
from docgates.analysis.naming import naming_layer, naming_violation
from docgates.analysis.scope import scope_report
from docgates.json_types import JSONObject

MAX_NUMBERED_LEVEL = 3


@dataclass(frozen=True)
class GateContext:
    graph: DocumentGraph
    corpus: CaseCorpus
    categories: tuple[str, ...] = DEFAULT_CATEGORIES

    def documents(self) -> list[tuple[str, list[str]]]:
        return [
            (path, split_lines(self.graph.contents[path]))
            for path in self.graph.doc_status
            if path in self.graph.contents
        ]


GateEvaluator = Callable[[GateContext], list[Violation]]


def check_metadata(context: GateContext) -> list[Violation]:
    graph = context.graph
    violations: list[Violation] = []
    for path, status in graph.doc_status.items():
        if status == "read-error":
            reason = graph.read_errors.get(path, "unknown error")
            violations.append(
                Violation("DOC-01", path, f"Failed to read document: {reason}")
            )
            continue
        block = graph.breadcrumbs.get(path)
        if block is None:
            violations.append(Violation("DOC-01", path, "Breadcrumbs block is missing"))
        elif block.empty:
            violations.append(Violation("DOC-01", path, "Breadcrumbs block is empty"))
        elif not block.complete:
            missing = ", ".join(block.missing_fields)
            violations.append(
                Violation("DOC-01", path, f"Breadcrumbs block is incomplete (missing: {missing})")
            )
        violations.extend(_title_violations(path, split_lines(graph.contents[path])))
    return violations


def _title_violations(path: str, lines: list[str]) -> list[Violation]:
    front_matter = parse_front_matter(lines)
    if front_matter is None:
        return []
    if front_matter.error:
        return [Violation("DOC-01", path, f"Front matter could not be parsed: {front_matter.error}")]
    title = front_matter.data.get("title")
    heading = first_h1(lines)
    if title is None or heading is None:
        return []
    if str(title).strip() == heading.text:
        return []
    return [
        Violation(
            "DOC-01",
            path,
            f"Front matter title {str(title).strip()!r} does not match H1 {heading.text!r}",
            heading=heading.text,
        )
    ]


def check_layers(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for path, node in context.graph.nodes.items():
        if context.graph.doc_status.get(path) != "ok":
            continue
        if not node.layer:
            violations.append(Violation("DOC-02", path, "Layer is not declared"))
            continue
        if node.layer.upper() not in VALID_LAYERS:
            violations.append(
                Violation(
                    "DOC-02",
                    path,
                    f"Invalid layer: {node.layer} (valid: {', '.join(VALID_LAYERS)})",
                    layer=node.layer,
                )
            )
    return violations


def check_links(context: GateContext) -> list[Violation]:
    known = {
        path for path, status in context.graph.doc_status.items() if status != "read-error"
    }
    violations: list[Violation] = []
    for path, node in context.graph.nodes.items():
        if context.graph.doc_status.get(path) != "ok":
            continue
        for direction, links in (("Upstream", node.upstream), ("Downstream", node.downstream)):
            for link in links:
                if link not in known:
                    violations.append(
                        Violation("DOC-03", path, f"{direction} link not found: {link}", link=link)
                    )
    return violations


def check_cycles(context: GateContext) -> list[Violation]:
    return [
        Violation(
            "DOC-04",
            cycle[0],
            f"Circular reference: {' → '.join(cycle)}",
            severity="warn",
            cycle=cycle,
        )
        for cycle in find_cycles(context.graph.downstream_adjacency())
    ]


def check_heading_numbers(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for path, lines in context.documents():
        counter = HeadingCounter()
        for heading in extract_headings(lines):
            if heading.level < 2 or heading.is_toc:
                continue
            expected = counter.advance(heading.level)
            if heading.level > MAX_NUMBERED_LEVEL:
                continue
            wanted = format_number(expected)
            if heading.number is None:
                violations.append(
                    Violation(
                        "DOC-05",
                        path,
                        f"Heading is not numbered; expected {wanted}",
                        heading=heading.text,
                    )
                )
            elif heading.number != expected:
                violations.append(
                    Violation(
                        "DOC-05",
                        path,
                        f"Heading number {format_number(heading.number)} is out of sequence; expected {wanted}",
                        heading=heading.text,
                    )
                )
                if len(heading.number) == len(expected):
                    counter.resync(heading.number)
    return violations


def check_table_of_contents(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for path, lines in context.documents():
        headings = extract_headings(lines)
        toc = find_toc(headings)
        if toc is None:
            violations.append(Violation("DOC-06", path, "Table of contents section is missing"))
            continue
        start, end = section_bounds(lines, toc)
        links = anchor_links(lines, start + 1, end)
        if not links:
            violations.append(
                Violation("DOC-06", path, "Table of contents has no in-document links")
            )
            continue
        slugs = {slugify_heading(heading.text) for heading in headings if heading is not toc}
        for _text, target in links:
            if unquote(target[1:]) not in slugs:
                violations.append(
                    Violation("DOC-06", path, f"TOC link target not found: {target}", link=target)
                )
    return violations


def check_naming(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for path in context.graph.doc_status:
        node = context.graph.nodes.get(path)
        layer = node.layer if node else None
        message = naming_violation(path, layer)
        if message:
            violations.append(
                Violation("DOC-07", path, message, layer=naming_layer(path, layer))
            )
    return violations


def check_scope_sections(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for path, lines in context.documents():
        report = scope_report(lines)
        if report.satisfied:
            continue
        for label, section in (("in-scope", report.in_scope), ("out-of-scope", report.out_of_scope)):
            if section is None:
                violations.append(
                    Violation("DOC-08", path, f"Missing {label} section", severity="warn")
                )
            elif not section.has_items:
                violations.append(
                    Violation("DOC-08", path, f"The {label} section has no list items", severity="warn")
                )
    return violations


def check_case_names(context: GateContext) -> list[Violation]:
    corpus = context.corpus
    violations: list[Violation] = []
    for case in corpus.cases:
        message = case_name_error(case.name, context.categories)
        if message:
            violations.append(Violation("TC-01", case.path, message))
        if case.error is not None:
            violations.append(Violation("TC-01", case.path, f"Failed to read test case: {case.error}"))
    if not corpus.cases:
        fallback = (corpus.roots or corpus.requested_roots or ("test",))[0]
        violations.append(
            Violation("TC-01", fallback, "No test cases (*.spec.ts) were found", severity="warn")
        )
    return violations


def check_case_independence(context: GateContext) -> list[Violation]:
    return [
        Violation(
            "TC-02",
            case.path,
            "Test cases depend on each other's execution order",
            severity="warn",
        )
        for case in context.corpus.cases
        if case.content and has_dependency_pattern(case.content)
    ]


def check_case_documentation(context: GateContext) -> list[Violation]:
    violations: list[Violation] = []
    for case in context.corpus.cases:
        if case.error is not None:
            continue
        if not case.content:
            violations.append(
                Violation("TC-03", case.path, "Test source is empty", severity="warn", coverage=0.0)
            )
            continue
        documented, total = documentation_coverage(case.content)
        if total == 0:
            continue
        coverage = round(documented / total * 100, 1)
        if coverage < DOCUMENTATION_THRESHOLD:
            violations.append(
                Violation(
                    "TC-03",
                    case.path,
                    f"Documentation coverage is {coverage}% (target: {DOCUMENTATION_THRESHOLD:g}%)",
                    severity="warn",
                    coverage=coverage,
                )
            )
    return violations


def check_fixtures(context: GateContext) -> list[Violation]:
    corpus = context.corpus
    violations: list[Violation] = []
    if not corpus.fixture_dirs or not corpus.fixture_files:
        violations.append(
            Violation(
                "TC-04",
                corpus.fixture_dirs[0] if corpus.fixture_dirs else "test",
                "No test data found in a fixtures/ directory",
            )
        )
    for case in corpus.cases:
        if not case.content or not uses_fixtures(case.content):
            continue
        if not has_setup_and_teardown(case.content):
            violations.append(
                Violation(
                    "TC-04",
                    case.path,
                    "Tests using fixtures/ must implement setup and teardown hooks",
                )
            )
    return violations


GATE_EVALUATORS: dict[str, GateEvaluator] = {
    "DOC-01": check_metadata,
    "DOC-02": check_layers,
    "DOC-03": check_links,
    "DOC-04": check_cycles,
    "DOC-05": check_heading_numbers,
    "DOC-06": check_table_of_contents,
    "DOC-07": check_naming,
    "DOC-08": check_scope_sections,
    "TC-01": check_case_names,
    "TC-02": check_case_independence,
    "TC-03": check_case_documentation,
    "TC-04": check_fixtures,
}


def evaluate_gates(
    graph: DocumentGraph,
    corpus: CaseCorpus,
    *,
    categories: Sequence[str] = DEFAULT_CATEGORIES,
) -> QualityGateResults:
    context = GateContext(graph=graph, corpus=corpus, categories=tuple(categories))
    results = empty_results()
    for gate_id, evaluator in GATE_EVALUATORS.items():
        results[gate_id] = evaluator(context)
    return results


def exit_code_for(results: Mapping[str, Sequence[Violation]], *, strict: bool = False) -> int:
    for gate_id, violations in results.items():
        if strict and violations:
            return 1
        if gate_id in ERROR_GATE_IDS and any(v.severity == "error" for v in violations):
            return 1
    return 0


def gate_status(gate_id: str, violations: Sequence[Violation]) -> str:
    if not violations:
        return "PASS"
    if gate_id in ERROR_GATE_IDS and any(v.severity == "error" for v in violations):
        return "FAIL"
    return "WARN"


def summarize_gate_results(results: Mapping[str, Sequence[Violation]]) -> list[JSONObject]:
    ordered = [gate_id for gate_id in GATE_IDS if gate_id in results]
    ordered.extend(sorted(gate_id for gate_id in results if gate_id not in GATE_IDS))
    summary: list[JSONObject] = []
    for gate_id in ordered:
        severity = {"error": 0, "warn": 0, "info": 0}
        for violation in results[gate_id]:
            severity[violation.severity] = severity.get(violation.severity, 0) + 1
        summary.append(
            {
                "gateId": gate_id,
                "total": len(results[gate_id]),
                "uniqueDocuments": len({violation.path for violation in results[gate_id]}),
                "severity": dict(severity),
            }
        )
    return summary


def summarize_documents(
    results: Mapping[str, Sequence[Violation]],
    doc_status: Mapping[str, str],
) -> JSONObject:
    """Document counts by read status, plus how many documents a DOC gate flagged."""
    by_status: dict[str, int] = {}
    for status in doc_status.values():
        by_status[status] = by_status.get(status, 0) + 1
    flagged = {
        violation.path
        for gate_id, violations in results.items()
        if gate_id.startswith("DOC-")
        for violation in violations
    }
    return {"total": len(doc_status), "byStatus": by_status, "withViolations": len(flagged)}
