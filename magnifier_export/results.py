"""Result values for the export pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExportFailure(str, Enum):
    NO_CANDIDATE_FOUND = "no_candidate_found"
    SURFACE_TAINTED = "surface_tainted"
    FETCH_BLOCKED = "fetch_blocked"
    IMAGE_NOT_READY = "image_not_ready"
    EXTRACTION_FAILED = "extraction_failed"

    @property
    def retryable(self) -> bool:
        """Whether the next fallback tier should be attempted after this failure."""
        return self in (ExportFailure.SURFACE_TAINTED, ExportFailure.EXTRACTION_FAILED)


@dataclass(frozen=True)
class ExportResult:
    data: Optional[bytes] = None
    failure: Optional[ExportFailure] = None
    detail: str = ""
    tier: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.data)

    @classmethod
    def success(cls, data: bytes, *, tier: int) -> "ExportResult":
        return cls(data=data, tier=tier)

    @classmethod
    def failed(cls, failure: ExportFailure, detail: str = "", *, tier: int = 0) -> "ExportResult":
        return cls(failure=failure, detail=detail, tier=tier)
