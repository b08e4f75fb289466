"""Merge per-tile tower lists into one unique tower set"""
import logging
from typing import Iterable, List, Tuple

from .models import TowerRecord

logger = logging.getLogger(__name__)


def tower_identity(tower: TowerRecord) -> Tuple[int, int, int, int]:
    """Dedup key: (mcc, mnc, lac-or-tac, cell id)"""
    return (tower.mcc, tower.mnc, tower.area_code, tower.cell_id)


def deduplicate_towers(towers: Iterable[TowerRecord]) -> List[TowerRecord]:
    """Drop repeated towers, keeping the first-seen instance as-is.

    Adjacent tiles share their edges, so a tower on a seam comes back from
    both queries. Fields of later duplicates are not merged in.
    """
    seen = set()
    unique: List[TowerRecord] = []
    total = 0
    for tower in towers:
        total += 1
        key = tower_identity(tower)
        if key in seen:
            continue
        seen.add(key)
        unique.append(tower)

    if total != len(unique):
        logger.debug(f"Deduplicated {total} tower records to {len(unique)} unique towers")
    return unique
