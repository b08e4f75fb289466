"""Tower records as returned by the tower-lookup collaborator"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Spellings seen in crowd-sourced datasets for the same radio technology
_RADIO_ALIASES = {
    "GSM": "GSM",
    "2G": "GSM",
    "UMTS": "UMTS",
    "WCDMA": "UMTS",
    "3G": "UMTS",
    "LTE": "LTE",
    "4G": "LTE",
    "LTE-M": "LTE-M",
    "LTEM": "LTE-M",
    "CAT-M": "LTE-M",
    "CAT-M1": "LTE-M",
    "CATM1": "LTE-M",
    "NR": "NR",
    "5G": "NR",
    "5G-NR": "NR",
}


class RadioType(str, Enum):
    GSM = "GSM"
    UMTS = "UMTS"
    LTE = "LTE"
    LTE_M = "LTE-M"
    NR = "NR"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "RadioType":
        key = (raw or "").strip().upper().replace("_", "-")
        value = _RADIO_ALIASES.get(key)
        return cls(value) if value else cls.UNKNOWN


class TowerRecord(BaseModel):
    """Single cell observed by the tower-lookup collaborator.

    ``area_code`` is the LAC for GSM/UMTS cells and the TAC for LTE/NR
    cells; together with mcc, mnc and cell_id it identifies the cell.
    """
    model_config = ConfigDict(frozen=True)

    mcc: int = Field(..., ge=0)
    mnc: int = Field(..., ge=0)
    area_code: int = Field(..., ge=0)
    cell_id: int = Field(..., ge=0)
    radio: RadioType = RadioType.UNKNOWN
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    samples: int = Field(0, ge=0)
    last_seen: Optional[datetime] = None

    @property
    def identity(self) -> Tuple[int, int, int, int]:
        return (self.mcc, self.mnc, self.area_code, self.cell_id)
