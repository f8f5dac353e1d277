from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class SpanDTO(BaseModel):
    file: str = ""
    line: int = 0
    column: int = 0


class MetaItemDTO(BaseModel):
    name: Optional[str] = None
    value: Optional[str] = None


class AnnotationDTO(BaseModel):
    name: str
    items: List[MetaItemDTO] = []
    span: Optional[SpanDTO] = None


class DeclarationDTO(BaseModel):
    kind: str
    name: str
    identity: Optional[str] = None
    span: Optional[SpanDTO] = None
    # Either structured annotations or `name(key="value")` text.
    annotations: List[Union[str, AnnotationDTO]] = []
    children: List[DeclarationDTO] = []


class FingerprintDTO(BaseModel):
    label: str
    identity: Optional[str] = None
    # Def path of the declaration, used when `identity` is omitted.
    path: Optional[str] = None
    current: str
    previous: Optional[str] = None


class MetadataHashesDTO(BaseModel):
    previous: Dict[str, str] = {}
    current: Dict[str, str] = {}


class SnapshotDTO(BaseModel):
    version: int = 1
    crate: str
    annotations_enabled: bool = True
    labels: List[str] = []
    declarations: List[DeclarationDTO] = []
    fingerprints: List[FingerprintDTO] = []
    metadata_hashes: Optional[MetadataHashesDTO] = None


class DiagnosticDTO(BaseModel):
    severity: str
    file: str = ""
    line: int = 0
    column: int = 0
    message: str


class PassReportDTO(BaseModel):
    name: str
    status: str
    checked: int = 0
    asserted: int = 0
    diagnostics: List[DiagnosticDTO] = []


class VerificationSummaryDTO(BaseModel):
    errors: int = 0
    fatal: int = 0
    aborted_passes: List[str] = []


class VerificationResponseDTO(BaseModel):
    version: int
    crate: str
    cfg: List[str] = []
    summary: VerificationSummaryDTO = Field(default_factory=VerificationSummaryDTO)
    passes: List[PassReportDTO] = []
    exit_code: int = 0
