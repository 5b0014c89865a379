from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ViolationDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gate_id: str = Field(alias="gateId")
    path: str
    message: str
    severity: Literal["error", "warn", "info"] = "error"
    link: Optional[str] = None
    heading: Optional[str] = None
    layer: Optional[str] = None
    cycle: Optional[List[str]] = None
    coverage: Optional[float] = None


class SeverityCountsDTO(BaseModel):
    error: int = 0
    warn: int = 0
    info: int = 0


class GateSummaryDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gate_id: str = Field(alias="gateId")
    total: int
    unique_documents: int = Field(0, alias="uniqueDocuments")
    severity: SeverityCountsDTO


class DocumentSummaryDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict, alias="byStatus")
    with_violations: int = Field(0, alias="withViolations")


class GateDeltaDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gate_id: str = Field(alias="gateId")
    added: List[ViolationDTO] = []
    removed: List[ViolationDTO] = []


class GateDiffDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_added: int = Field(0, alias="totalAdded")
    total_removed: int = Field(0, alias="totalRemoved")
    per_gate: List[GateDeltaDTO] = Field(default_factory=list, alias="perGate")


class ValidationPayloadDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: Dict[str, List[ViolationDTO]]
    context_path: str = Field(alias="contextPath")
    project_root: Optional[str] = Field(None, alias="projectRoot")
    doc_status: Dict[str, str] = Field(default_factory=dict, alias="docStatus")


class RenameOperationDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["rename"] = "rename"
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    reason: str


class ModifyOperationDTO(BaseModel):
    type: Literal["modify"] = "modify"
    path: str
    actions: List[str] = []


class AutofixSummaryDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["ok", "failed"]
    timestamp: str
    project_root: str = Field(alias="projectRoot")
    context_path: str = Field(alias="contextPath")
    dry_run: bool = Field(alias="dryRun")
    operations: List[RenameOperationDTO | ModifyOperationDTO] = []
    rename_map: Dict[str, str] = Field(default_factory=dict, alias="renameMap")
    warnings: List[str] = []
    errors: List[str] = []


class RepoDiffDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name_status: str = Field("", alias="nameStatus")
    patch: str = ""
    files: List[str] = []


class RunLogDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    mode: Literal["auto", "manual", "bulk"]
    exit_code: int = Field(alias="exitCode")
    payload: ValidationPayloadDTO
    summary: List[GateSummaryDTO] = []
    documents: Optional[DocumentSummaryDTO] = None
    diff: Optional[GateDiffDTO] = None
    autofix: Optional[AutofixSummaryDTO] = None
    repo_diff: Optional[RepoDiffDTO] = Field(None, alias="repoDiff")


class RunLogDescriptorDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    name: str
    timestamp: str
    mode: str
    exit_code: Optional[int] = Field(None, alias="exitCode")


class ImpactDocumentDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    absolute_path: str = Field(alias="absolutePath")
    category: str
    status: Literal["ok", "missing", "unreadable"]
    exists: bool
    message: Optional[str] = None


class ImpactSummaryDTO(BaseModel):
    total: int = 0
    missing: int = 0
    unreadable: int = 0
    categories: Dict[str, int] = {}


class ImpactScanDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scanned_at: str = Field(alias="scannedAt")
    project_root: str = Field(alias="projectRoot")
    context_path: Optional[str] = Field(None, alias="contextPath")
    documents: List[ImpactDocumentDTO] = []
    summary: ImpactSummaryDTO = ImpactSummaryDTO()
    warnings: List[str] = []


class SegmentStateDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["auto", "manual", "bulk"]
    status: Literal["idle", "running", "completed", "error"] = "idle"
    last_run_at: Optional[str] = Field(None, alias="lastRunAt")
    log_path: Optional[str] = Field(None, alias="logPath")
    exit_code: Optional[int] = Field(None, alias="exitCode")
    error: Optional[str] = None


class PipelineStateDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auto: SegmentStateDTO
    semi_auto: SegmentStateDTO = Field(alias="semiAuto")
    manual: SegmentStateDTO


class LastRunDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    mode: Literal["auto", "manual", "bulk"]
    exit_code: int = Field(alias="exitCode")
    log_path: Optional[str] = Field(None, alias="logPath")
    summary: List[GateSummaryDTO] = []
    documents: Optional[DocumentSummaryDTO] = None
    diff: Optional[GateDiffDTO] = None


class PipelineSnapshotDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: PipelineStateDTO
    last_run: Optional[LastRunDTO] = Field(None, alias="lastRun")


class DocumentChangeDTO(BaseModel):
    type: Literal["add", "change", "remove"]
    path: str
    lines: Dict[str, int]
    headings: Dict[str, List[str]]


class PipelineEventDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["quality-gates:update"] = "quality-gates:update"
    trigger: str
    timestamp: str
    impact: Optional[ImpactScanDTO] = None
    pipeline: PipelineSnapshotDTO
    logs: List[RunLogDescriptorDTO] = []
    changes: List[DocumentChangeDTO] = []
    message: Optional[str] = None
    error: Optional[str] = None


def normalize(model: type[BaseModel], payload: object) -> dict:
    """Validate ``payload`` against ``model`` and dump it with wire aliases."""
    return model.model_validate(payload).model_dump(by_alias=True, exclude_none=True)
