from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping, Sequence, TypeAlias

from docgates.json_types import JSONObject

DOC_GATE_IDS: tuple[str, ...] = (
    "DOC-01",
    "DOC-02",
    "DOC-03",
    "DOC-04",
    "DOC-05",
    "DOC-06",
    "DOC-07",
    "DOC-08",
)
TEST_GATE_IDS: tuple[str, ...] = ("TC-01", "TC-02", "TC-03", "TC-04")
GATE_IDS: tuple[str, ...] = DOC_GATE_IDS + TEST_GATE_IDS

# Gates whose error-severity violations make a run fail.
ERROR_GATE_IDS: frozenset[str] = frozenset(
    {"DOC-01", "DOC-02", "DOC-03", "DOC-05", "DOC-06", "DOC-07", "TC-01", "TC-04"}
)

DEFAULT_SEVERITY: dict[str, str] = {
    "DOC-01": "error",
    "DOC-02": "error",
    "DOC-03": "error",
    "DOC-04": "warn",
    "DOC-05": "error",
    "DOC-06": "error",
    "DOC-07": "error",
    "DOC-08": "warn",
    "TC-01": "error",
    "TC-02": "warn",
    "TC-03": "warn",
    "TC-04": "error",
}

VALID_LAYERS: tuple[str, ...] = (
    "STRATEGY",
    "PRD",
    "UX",
    "API",
    "DATA",
    "ARCH",
    "DEVELOPMENT",
    "QA",
)

Severity: TypeAlias = Literal["error", "warn", "info"]
DocStatus: TypeAlias = Literal["ok", "missing-breadcrumbs", "read-error"]
RunMode: TypeAlias = Literal["auto", "manual", "bulk"]


@dataclass(frozen=True)
class ContextEntry:
    category: str
    path: str
    description: str


@dataclass(frozen=True)
class DocumentNode:
    path: str
    layer: str
    upstream: tuple[str, ...] = ()
    downstream: tuple[str, ...] = ()

    def to_payload(self) -> JSONObject:
        return {
            "path": self.path,
            "layer": self.layer,
            "upstream": list(self.upstream),
            "downstream": list(self.downstream),
        }


@dataclass(frozen=True)
class Violation:
    gate_id: str
    path: str
    message: str
    severity: Severity = "error"
    link: str | None = None
    heading: str | None = None
    layer: str | None = None
    cycle: tuple[str, ...] | None = None
    coverage: float | None = None

    def key(self) -> str:
        """Identity used when diffing two result sets."""
        cycle = "->".join(self.cycle) if self.cycle else ""
        return "::".join(
            [
                self.path,
                self.message,
                self.link or "",
                self.heading or "",
                self.layer or "",
                cycle,
            ]
        )

    def to_payload(self) -> JSONObject:
        payload: JSONObject = {
            "gateId": self.gate_id,
            "path": self.path,
            "message": self.message,
            "severity": self.severity,
        }
        if self.link is not None:
            payload["link"] = self.link
        if self.heading is not None:
            payload["heading"] = self.heading
        if self.layer is not None:
            payload["layer"] = self.layer
        if self.cycle is not None:
            payload["cycle"] = list(self.cycle)
        if self.coverage is not None:
            payload["coverage"] = self.coverage
        return payload

    @classmethod
    def from_payload(cls, gate_id: str, payload: Mapping[str, object]) -> "Violation":
        severity = str(payload.get("severity") or DEFAULT_SEVERITY.get(gate_id, "error"))
        if severity not in {"error", "warn", "info"}:
            severity = "error"
        cycle = payload.get("cycle")
        coverage = payload.get("coverage")
        return cls(
            gate_id=str(payload.get("gateId") or gate_id),
            path=str(payload.get("path") or ""),
            message=str(payload.get("message") or ""),
            severity=severity,  # type: ignore[arg-type]
            link=_optional_str(payload.get("link")),
            heading=_optional_str(payload.get("heading")),
            layer=_optional_str(payload.get("layer")),
            cycle=tuple(str(item) for item in cycle) if isinstance(cycle, list) else None,
            coverage=float(coverage) if isinstance(coverage, (int, float)) else None,
        )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


# Every fixed gate id is present, even when its list is empty.
QualityGateResults: TypeAlias = dict[str, list[Violation]]


def empty_results() -> QualityGateResults:
    return {gate_id: [] for gate_id in GATE_IDS}


def results_to_payload(results: Mapping[str, Sequence[Violation]]) -> dict[str, list[JSONObject]]:
    payload: dict[str, list[JSONObject]] = {gate_id: [] for gate_id in GATE_IDS}
    for gate_id, violations in results.items():
        payload[gate_id] = [violation.to_payload() for violation in violations]
    return payload


def results_from_payload(payload: Mapping[str, object] | None) -> QualityGateResults:
    results = empty_results()
    if not payload:
        return results
    for gate_id, raw in payload.items():
        if not isinstance(raw, list):
            continue
        results[str(gate_id)] = [
            Violation.from_payload(str(gate_id), item)
            for item in raw
            if isinstance(item, Mapping)
        ]
    return results


@dataclass(frozen=True)
class ValidationOutcome:
    """Results of one validation pass plus the facts that produced them."""

    results: QualityGateResults
    project_root: str
    context_path: str
    doc_status: dict[str, DocStatus] = field(default_factory=dict)

    def to_payload(self) -> JSONObject:
        return {
            "results": results_to_payload(self.results),
            "projectRoot": self.project_root,
            "contextPath": self.context_path,
            "docStatus": dict(self.doc_status),
        }
