from __future__ import annotations

from pathlib import Path

from docgates.analysis.breadcrumbs import (
    find_breadcrumbs,
    format_links,
    render_breadcrumbs,
    split_links,
)
from docgates.analysis.cycles import find_cycles, last_edge
from docgates.analysis.graph import build_graph, read_documents
from docgates.analysis.model import ContextEntry


def _entries(*paths: str) -> list[ContextEntry]:
    return [ContextEntry("Docs", path, "") for path in paths]


def _doc(layer: str = "ARCH", up: str = "N/A", down: str = "N/A") -> str:
    return "\n".join(
        ["# Doc", "", "> Breadcrumbs", f"> Layer: {layer}", f"> Upstream: {up}", f"> Downstream: {down}", ""]
    )


def test_split_links_accepts_both_separators_and_drops_na() -> None:
    assert split_links("a.mdc, b.mdc、c.mdc, a.mdc") == ("a.mdc", "b.mdc", "c.mdc")
    assert split_links("N/A") == ()
    assert split_links("") == ()
    assert format_links([]) == "N/A"
    assert format_links(["a", "b"]) == "a, b"


def test_find_breadcrumbs_ignores_fenced_blocks() -> None:
    lines = [
        "```",
        "> Breadcrumbs",
        "> Layer: PRD",
        "```",
        "> Breadcrumbs",
        "> Layer: ARCH",
        "> Upstream: docs/A.mdc",
        "",
    ]
    block = find_breadcrumbs(lines)
    assert block is not None
    assert block.start == 4
    assert block.end == 7
    assert block.layer == "ARCH"
    assert block.upstream == ("docs/A.mdc",)
    assert block.missing_fields == ("Downstream",)
    assert not block.complete


def test_render_breadcrumbs_is_canonical() -> None:
    assert render_breadcrumbs("QA", [], ["docs/B.mdc"]) == [
        "> Breadcrumbs",
        "> Layer: QA",
        "> Upstream: N/A",
        "> Downstream: docs/B.mdc",
    ]


def test_build_graph_assigns_document_status() -> None:
    entries = _entries("ok.mdc", "bare.mdc", "empty.mdc", "gone.mdc", "ok.mdc")
    contents = {
        "ok.mdc": _doc(down="bare.mdc"),
        "bare.mdc": "# Bare\n",
        "empty.mdc": "> Breadcrumbs\n\n",
    }
    graph = build_graph(entries, contents, {"gone.mdc": "No such file or directory"})
    assert dict(graph.doc_status) == {
        "ok.mdc": "ok",
        "bare.mdc": "missing-breadcrumbs",
        "empty.mdc": "missing-breadcrumbs",
        "gone.mdc": "read-error",
    }
    assert set(graph.nodes) == {"ok.mdc", "empty.mdc"}
    assert graph.nodes["ok.mdc"].downstream == ("bare.mdc",)
    assert graph.read_errors["gone.mdc"] == "No such file or directory"
    # Only ok documents contribute edges.
    assert graph.downstream_adjacency()["empty.mdc"] == ()


def test_read_documents_collects_errors_instead_of_raising(tmp_path: Path) -> None:
    (tmp_path / "a.mdc").write_text("content", encoding="utf-8")
    contents, errors = read_documents(tmp_path, _entries("a.mdc", "b.mdc"))
    assert contents == {"a.mdc": "content"}
    assert set(errors) == {"b.mdc"}


def test_find_cycles_reports_closed_cycles_once_per_node() -> None:
    adjacency = {
        "a": ("b",),
        "b": ("a", "c"),
        "c": ("d",),
        "d": ("c", "b"),
        "e": (),
    }
    cycles = find_cycles(adjacency)
    assert cycles[0] == ("a", "b", "a")
    assert ("c", "d", "c") in cycles
    members = [node for cycle in cycles for node in set(cycle)]
    assert len(members) == len(set(members))
    assert last_edge(("a", "b", "a")) == ("b", "a")
    assert last_edge(("a",)) is None


def test_find_cycles_detects_self_loop_and_acyclic_graph() -> None:
    assert find_cycles({"a": ("a",)}) == [("a", "a")]
    assert find_cycles({"a": ("b",), "b": ("c",), "c": ()}) == []


def test_find_cycles_handles_chains_deeper_than_the_recursion_limit() -> None:
    names = [f"docs/ARCH/N{index:04d}.mdc" for index in range(2000)]
    chain = {name: (following,) for name, following in zip(names, names[1:])}
    chain[names[-1]] = ()
    assert find_cycles(chain) == []

    chain[names[-1]] = (names[0],)
    [cycle] = find_cycles(chain)
    assert cycle == (*names, names[0])
    assert last_edge(cycle) == (names[-1], names[0])
