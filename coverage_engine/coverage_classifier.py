"""
Coverage classification of a deduplicated tower set.

Each tower runs through four filters in a fixed order:

1. radio technology  - only modern data radios (LTE, LTE-M, NR by default)
2. reliability       - at least ``min_samples`` crowd-sourced samples
3. distance          - haversine distance from the search center
4. whitelist         - canonical PLMN of (mcc, mnc) is supported

The first tower to clear all four decides the verdict; scanning stops there.
"""
import logging
from typing import Iterable, Optional, Sequence

from .models import Coordinate, CoverageVerdict, RadioType, TowerRecord, VerdictReason
from .plmn import plmn_from_parts
from .utils.geo_utils import haversine_km
from .whitelist import PLMNWhitelist

logger = logging.getLogger(__name__)

MODERN_DATA_RADIOS = frozenset({RadioType.LTE, RadioType.LTE_M, RadioType.NR})

STAGE_RADIO = "radio"
STAGE_RELIABILITY = "reliability"
STAGE_DISTANCE = "distance"
STAGE_WHITELIST = "whitelist"
STAGES = (STAGE_RADIO, STAGE_RELIABILITY, STAGE_DISTANCE, STAGE_WHITELIST)


class CoverageClassifier:

    def __init__(
        self,
        max_distance_km: float,
        min_samples: int = 5,
        accepted_radios: Iterable[RadioType] = MODERN_DATA_RADIOS,
    ):
        self.max_distance_km = max_distance_km
        self.min_samples = min_samples
        self.accepted_radios = frozenset(accepted_radios)

    def rejection_stage(
        self,
        tower: TowerRecord,
        center: Coordinate,
        whitelist: PLMNWhitelist,
    ) -> Optional[str]:
        """Name of the first stage ``tower`` fails, or None if it qualifies"""
        if tower.radio not in self.accepted_radios:
            return STAGE_RADIO
        if tower.samples < self.min_samples:
            return STAGE_RELIABILITY
        if haversine_km(center.lat, center.lon, tower.lat, tower.lon) > self.max_distance_km:
            return STAGE_DISTANCE
        plmn = plmn_from_parts(tower.mcc, tower.mnc)
        if plmn is None or not whitelist.is_supported(plmn):
            return STAGE_WHITELIST
        return None

    def classify(
        self,
        towers: Sequence[TowerRecord],
        center: Coordinate,
        whitelist: PLMNWhitelist,
    ) -> CoverageVerdict:
        rejections = {stage: 0 for stage in STAGES}
        examined = 0

        for tower in towers:
            examined += 1
            stage = self.rejection_stage(tower, center, whitelist)
            if stage is not None:
                rejections[stage] += 1
                continue

            logger.info(
                f"Supported tower found: {tower.radio.value} {tower.mcc}/{tower.mnc} "
                f"cell {tower.cell_id} after examining {examined}/{len(towers)} towers"
            )
            return CoverageVerdict(
                supported=True,
                reason=VerdictReason.MATCHED_TOWER,
                matched_tower=tower,
                towers_examined=examined,
                rejections=rejections,
            )

        logger.info(f"No supported tower among {len(towers)} towers (rejections: {rejections})")
        return CoverageVerdict(
            supported=False,
            reason=VerdictReason.NO_MATCHING_TOWER,
            towers_examined=examined,
            rejections=rejections,
        )
