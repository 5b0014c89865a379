from __future__ import annotations

import pytest

from docgates.analysis.naming import (
    ascii_slug,
    autofix_layer,
    naming_layer,
    naming_violation,
    propose_name,
    with_numeric_suffix,
)


@pytest.mark.parametrize(
    ("path", "layer"),
    [
        ("docs/PRD/PRD_CORE.mdc", "PRD"),
        ("docs/ARCH/SYSTEM.md", "ARCH"),
        ("docs/ARCH/SYSTEM.mdc", None),
        ("docs/UX/FLOW-MAP.mdc", "UX"),
        ("docs/anything/index.md", None),
    ],
)
def test_compliant_names(path: str, layer: str | None) -> None:
    assert naming_violation(path, layer) is None


@pytest.mark.parametrize(
    ("path", "layer", "fragment"),
    [
        ("docs/PRD/CORE.mdc", "PRD", "PRD naming rule"),
        ("docs/UX/FLOW.md", "UX", "UX naming rule"),
        ("docs/ARCH/system.mdc", "ARCH", "ARCH naming rule"),
        ("docs/ARCH/SYSTEM.txt", "ARCH", "Invalid file extension .txt"),
        ("docs/QA/TEST PLAN.mdc", "QA", "whitespace"),
    ],
)
def test_non_compliant_names(path: str, layer: str, fragment: str) -> None:
    message = naming_violation(path, layer)
    assert message is not None and fragment in message


def test_layer_resolution_prefers_metadata_then_directory() -> None:
    assert naming_layer("docs/PRD/x.mdc", "ux") == "UX"
    assert naming_layer("docs/PRD/x.mdc", None) == "PRD"
    assert naming_layer("notes/x.mdc", None) == "GENERAL"
    assert autofix_layer("notes/x.mdc") == "QA"


def test_propose_name_uses_heading_then_stem() -> None:
    assert propose_name("docs/PRD/core.mdc", "PRD", "Core Requirements") == "docs/PRD/PRD_CORE_REQUIREMENTS.mdc"
    assert propose_name("docs/PRD/prd_core.mdc", "PRD", None) == "docs/PRD/PRD_CORE.mdc"
    assert propose_name("docs/ARCH/system design.md", "ARCH", None) == "docs/ARCH/SYSTEM_DESIGN.md"
    assert propose_name("docs/UX/flow.md", "UX", "Café flow") == "docs/UX/CAFE_FLOW.mdc"
    assert propose_name("docs/UX/FLOW.mdc", "UX", "Anything") is None


def test_propose_name_falls_back_to_hash_for_non_ascii_titles() -> None:
    proposed = propose_name("docs/UX/画面.md", "UX", "画面設計")
    assert proposed is not None
    name = proposed.rsplit("/", 1)[-1]
    assert name.endswith(".mdc")
    assert naming_violation(proposed, "UX") is None
    assert ascii_slug("画面設計") == ""


def test_with_numeric_suffix_keeps_directory_and_extension() -> None:
    assert with_numeric_suffix("docs/UX/FLOW.mdc", 2) == "docs/UX/FLOW_2.mdc"
    assert with_numeric_suffix("FLOW.md", 1) == "FLOW_1.md"
