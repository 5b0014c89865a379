from __future__ import annotations

from docgates.analysis.casefiles import (
    case_name_error,
    discover_cases,
    documentation_coverage,
    has_dependency_pattern,
    has_setup_and_teardown,
    uses_fixtures,
)
from docgates.tooling.quality_gates import validate_project
from tests.doc_helpers import DocProject


def test_case_name_rules() -> None:
    assert case_name_error("docs-navigator-open-file.spec.ts") is None
    assert case_name_error("tree-view-expand-node.spec.js") is None
    assert case_name_error("integration-sync-remote-push.spec.ts") is None
    # The category consumes the first two parts, leaving a single part.
    assert case_name_error("docs-navigator-basic.spec.ts") is not None
    assert case_name_error("Tasks-run-all.spec.ts") is not None
    assert "Unknown test category: misc" in (case_name_error("misc-run-all.spec.ts") or "")
    assert case_name_error("misc-run-all.spec.ts", ["misc"]) is None


def test_dependency_patterns() -> None:
    chained = "test('first').then(() => test('second', () => {}))"
    assert has_dependency_pattern(chained)
    ordered = "beforeAll(() => { order = []; });\ntest('first', () => {})"
    assert has_dependency_pattern(ordered)
    assert not has_dependency_pattern("test('a', () => {});\ntest('b', () => {});")


def test_documentation_coverage_counts_documented_declarations() -> None:
    source = "\n".join(
        [
            "/**",
            " * 目的: 一覧を表示する",
            " * 期待結果: 一覧が表示される",
            " */",
            "test('lists', () => {});",
            "/** Purpose only */",
            "it('second', () => {});",
            "test('third', () => {});",
        ]
    )
    assert documentation_coverage(source) == (1, 3)
    assert documentation_coverage("const x = 1;") == (0, 0)


def test_fixture_helpers() -> None:
    source = "beforeAll(() => load('fixtures/data.json'));\nafterAll(() => reset());"
    assert uses_fixtures(source)
    assert has_setup_and_teardown(source)
    assert not has_setup_and_teardown("beforeEach(() => {});")


def test_discover_cases_walks_requested_roots(project: DocProject) -> None:
    project.write("e2e/suite/tasks-run-all.spec.ts", "test('x', () => {});\n")
    project.write("e2e/node_modules/pkg/tasks-ignored-file.spec.ts", "")
    project.write("e2e/fixtures/input.json", "{}\n")
    corpus = discover_cases(project.root, ["e2e", "missing"])
    assert corpus.roots == ("e2e",)
    assert corpus.requested_roots == ("e2e", "missing")
    assert [case.path for case in corpus.cases] == ["e2e/suite/tasks-run-all.spec.ts"]
    assert corpus.fixture_dirs == ("e2e/fixtures",)
    assert corpus.fixture_files == ("e2e/fixtures/input.json",)


def test_case_gates_through_validation(project: DocProject) -> None:
    project.passing_pair()
    project.write("test/docs-navigator-basic.spec.ts", "test('a').then(() => test('b', () => {}));\n")
    project.write(
        "test/tasks-load-data.spec.ts",
        "/** Purpose: load\n * Expected: loaded */\ntest('loads', () => read('fixtures/sample.json'));\n",
    )
    results = validate_project(project.root).results
    assert [v.path for v in results["TC-01"]] == ["test/docs-navigator-basic.spec.ts"]
    assert [v.path for v in results["TC-02"]] == ["test/docs-navigator-basic.spec.ts"]
    [coverage] = results["TC-03"]
    assert coverage.coverage == 0.0
    assert [v.message for v in results["TC-04"]] == [
        "Tests using fixtures/ must implement setup and teardown hooks"
    ]


def test_missing_test_corpus_is_reported(project: DocProject) -> None:
    project.write_document("docs/ARCH/SYSTEM.mdc", "System")
    project.write_context(["docs/ARCH/SYSTEM.mdc"])
    results = validate_project(project.root).results
    [no_cases] = results["TC-01"]
    assert no_cases.severity == "warn"
    assert [v.message for v in results["TC-04"]] == ["No test data found in a fixtures/ directory"]
