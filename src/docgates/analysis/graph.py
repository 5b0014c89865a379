from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Sequence

from docgates.analysis.breadcrumbs import BreadcrumbBlock, find_breadcrumbs
from docgates.analysis.markdown import split_lines
from docgates.analysis.model import ContextEntry, DocStatus, DocumentNode


@dataclass(frozen=True)
class DocumentGraph:
    """Immutable snapshot of the governed documents for one run."""

    entries: tuple[ContextEntry, ...]
    nodes: Mapping[str, DocumentNode]
    doc_status: Mapping[str, DocStatus]
    contents: Mapping[str, str]
    read_errors: Mapping[str, str] = field(default_factory=dict)
    breadcrumbs: Mapping[str, BreadcrumbBlock] = field(default_factory=dict)

    @property
    def paths(self) -> list[str]:
        return list(self.doc_status)

    def downstream_adjacency(self) -> dict[str, tuple[str, ...]]:
        """Edges contributed by documents whose status is ``ok``."""
        return {
            path: (
                self.nodes[path].downstream
                if self.doc_status.get(path) == "ok" and path in self.nodes
                else ()
            )
            for path in self.doc_status
        }


def read_documents(
    root: Path,
    entries: Sequence[ContextEntry],
    *,
    read_fn: Callable[[Path], str] | None = None,
) -> tuple[dict[str, str], dict[str, str]]:
    reader = read_fn or (lambda path: path.read_text(encoding="utf-8"))
    contents: dict[str, str] = {}
    errors: dict[str, str] = {}
    for entry in entries:
        if entry.path in contents or entry.path in errors:
            continue
        try:
            contents[entry.path] = reader(root / entry.path)
        except (OSError, UnicodeError) as exc:
            errors[entry.path] = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
    return contents, errors


def build_graph(
    entries: Sequence[ContextEntry],
    contents: Mapping[str, str],
    read_errors: Mapping[str, str] | None = None,
) -> DocumentGraph:
    errors = dict(read_errors or {})
    nodes: dict[str, DocumentNode] = {}
    status: dict[str, DocStatus] = {}
    blocks: dict[str, BreadcrumbBlock] = {}
    for entry in entries:
        path = entry.path
        if path in status:
            continue
        if path in errors or path not in contents:
            status[path] = "read-error"
            errors.setdefault(path, "not read")
            continue
        block = find_breadcrumbs(split_lines(contents[path]))
        if block is None:
            status[path] = "missing-breadcrumbs"
            continue
        blocks[path] = block
        nodes[path] = DocumentNode(
            path=path,
            layer=block.layer,
            upstream=block.upstream,
            downstream=block.downstream,
        )
        status[path] = "missing-breadcrumbs" if block.empty else "ok"
    return DocumentGraph(
        entries=tuple(entries),
        nodes=nodes,
        doc_status=status,
        contents={path: text for path, text in contents.items() if path in status},
        read_errors={path: reason for path, reason in errors.items() if path in status},
        breadcrumbs=blocks,
    )


def load_graph(root: Path, entries: Sequence[ContextEntry]) -> DocumentGraph:
    contents, errors = read_documents(root, entries)
    return build_graph(entries, contents, errors)
