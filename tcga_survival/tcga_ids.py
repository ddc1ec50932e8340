from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

# TCGA-<TSS>-<participant>[-<sample type><vial>[-<portion><analyte>[-<plate>-<center>]]]
_BARCODE_RE = re.compile(
    r"^TCGA-(?P<tss>[A-Z0-9]{2})-(?P<participant>[A-Z0-9]{4})"
    r"(?:-(?P<sample_type>\d{2})(?P<vial>[A-Z])?"
    r"(?:-(?P<portion>\d{2})(?P<analyte>[A-Z])?"
    r"(?:-(?P<plate>[A-Z0-9]{4})(?:-(?P<center>\d{2}))?)?)?)?$"
)


@dataclass(frozen=True)
class TcgaBarcode:
    tss: str
    participant: str
    sample_type: str | None = None
    vial: str | None = None
    portion: str | None = None
    analyte: str | None = None
    plate: str | None = None
    center: str | None = None

    @classmethod
    def parse(cls, barcode: str) -> TcgaBarcode:
        m = _BARCODE_RE.match(str(barcode).strip().upper())
        if not m:
            raise ValueError(f"not a TCGA barcode: {barcode!r}")
        return cls(**m.groupdict())

    @property
    def case_id(self) -> str:
        return f"TCGA-{self.tss}-{self.participant}"

    def is_primary_tumor(self) -> bool:
        return self.sample_type == "01"


def is_tcga_barcode(value: str) -> bool:
    return _BARCODE_RE.match(str(value).strip().upper()) is not None


def tcga_case_id(barcode: str) -> str:
    return TcgaBarcode.parse(barcode).case_id


def is_primary_tumor(barcode: str) -> bool:
    return is_tcga_barcode(barcode) and TcgaBarcode.parse(barcode).is_primary_tumor()


def dedupe_by_case(barcodes: Iterable[str]) -> list[str]:
    """Keep the first barcode seen for each case, preserving input order."""
    seen: set[str] = set()
    kept: list[str] = []
    for bc in barcodes:
        cid = tcga_case_id(bc)
        if cid in seen:
            continue
        seen.add(cid)
        kept.append(bc)
    return kept
