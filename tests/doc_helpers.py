from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from docgates.analysis.markdown import slugify_heading

CONTEXT_REL = ".cursor/context.mdc"

PASSING_CASE = """\
/**
 * Purpose: open a document from the navigator
 * Expected: the editor shows the document
 */
test('opens a document', async () => {
  expect(true).toBe(true);
});
"""


def render_document(
    title: str,
    *,
    layer: str = "ARCH",
    upstream: Iterable[str] = (),
    downstream: Iterable[str] = (),
    sections: Iterable[str] = ("Overview",),
) -> str:
    """A document that passes every document gate."""
    up = ", ".join(upstream) or "N/A"
    down = ", ".join(downstream) or "N/A"
    headings = [f"{index}. {name}" for index, name in enumerate(sections, start=1)]
    start = len(headings) + 1
    headings.append(f"{start}. In Scope")
    headings.append(f"{start + 1}. Out of Scope")
    lines = [
        f"# {title}",
        "",
        "> Breadcrumbs",
        f"> Layer: {layer}",
        f"> Upstream: {up}",
        f"> Downstream: {down}",
        "",
        "## 目次",
        "",
    ]
    lines.extend(f"- [{text}](#{slugify_heading(text)})" for text in headings)
    for text in headings:
        lines.extend(["", f"## {text}", ""])
        if text.endswith("In Scope"):
            lines.append("- the documented behaviour")
        elif text.endswith("Out of Scope"):
            lines.append("- everything else")
        else:
            lines.append("Body text.")
    return "\n".join(lines) + "\n"


def render_context(entries: Iterable[tuple[str, str]], *, category: str = "Architecture") -> str:
    lines = ["# Project context", "", "## Context Map", "", f"### {category}"]
    lines.extend(f"- {path} … {description}" for path, description in entries)
    lines.extend(["", "## Notes", "", "- not part of the map"])
    return "\n".join(lines) + "\n"


@dataclass
class DocProject:
    root: Path

    def path(self, rel: str) -> Path:
        return self.root / rel

    def write(self, rel: str, text: str) -> Path:
        target = self.root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return target

    def read(self, rel: str) -> str:
        return (self.root / rel).read_text(encoding="utf-8")

    def write_context(self, paths: Iterable[str], *, rel: str = CONTEXT_REL) -> Path:
        return self.write(rel, render_context((path, f"notes for {path}") for path in paths))

    def write_document(self, rel: str, title: str, **kwargs) -> Path:
        return self.write(rel, render_document(title, **kwargs))

    def write_passing_cases(self) -> None:
        self.write("test/docs-navigator-open-file.spec.ts", PASSING_CASE)
        self.write("test/fixtures/sample.json", "{}\n")

    def passing_pair(self) -> tuple[str, str]:
        """Two linked documents plus a clean test corpus."""
        prd = "docs/PRD/PRD_CORE.mdc"
        arch = "docs/ARCH/SYSTEM.mdc"
        self.write_document(prd, "Core", layer="PRD", downstream=[arch])
        self.write_document(arch, "System", layer="ARCH", upstream=[prd])
        self.write_context([prd, arch])
        self.write_passing_cases()
        return prd, arch
