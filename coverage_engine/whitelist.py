"""
PLMN whitelist built from a delimited reference dataset.

The whitelist is an immutable value: it is built once, handed to the
classifier by reference, and replaced wholesale (``WhitelistStore.swap``)
when the reference data is refreshed. Readers holding the old instance keep
a consistent view for the rest of their request.
"""
import csv
import logging
import threading
import warnings
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from .coverage_exceptions import CoverageConfigurationError, WhitelistEmpty
from .plmn import canonicalize_plmn

logger = logging.getLogger(__name__)


def _normalize_group(group: Any) -> str:
    return str(group).strip().casefold()


class PLMNWhitelist:
    """Canonical PLMN -> group tag, restricted to the accepted groups"""

    def __init__(self, entries: Mapping[str, str], accepted_groups: Iterable[str]):
        self._entries = MappingProxyType(dict(entries))
        self.accepted_groups = frozenset(_normalize_group(g) for g in accepted_groups)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        accepted_groups: Iterable[str],
        id_column: str = "PLMN",
        group_column: str = "Group",
        source: str = "records",
    ) -> "PLMNWhitelist":
        """Build a whitelist, silently skipping malformed or short rows.

        A row counts only when its identifier canonicalizes (5 or 6 digits
        after stripping non-digits) and its group is one of ``accepted_groups``.
        """
        accepted = frozenset(_normalize_group(g) for g in accepted_groups)
        entries = {}
        skipped = 0
        filtered = 0

        for row in records:
            if not isinstance(row, Mapping):
                skipped += 1
                continue
            group = row.get(group_column)
            plmn = canonicalize_plmn(row.get(id_column))
            if group is None or plmn is None:
                skipped += 1
                continue
            if _normalize_group(group) not in accepted:
                filtered += 1
                continue
            entries.setdefault(plmn, str(group).strip())

        whitelist = cls(entries, accepted)
        logger.info(
            f"Whitelist built from {source}: {whitelist.size} supported networks "
            f"({skipped} malformed rows skipped, {filtered} rows outside groups {sorted(accepted)})"
        )
        if whitelist.is_empty:
            message = f"Whitelist built from {source} has zero entries; no tower can ever match"
            logger.warning(message)
            warnings.warn(WhitelistEmpty(message), stacklevel=2)
        return whitelist

    @classmethod
    def empty(cls, accepted_groups: Iterable[str] = ()) -> "PLMNWhitelist":
        return cls({}, accepted_groups)

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return self.size

    def __contains__(self, plmn: object) -> bool:
        return isinstance(plmn, (str, int)) and self.is_supported(plmn)

    def is_supported(self, plmn: Union[str, int]) -> bool:
        canonical = canonicalize_plmn(plmn)
        return canonical is not None and canonical in self._entries

    def group_for(self, plmn: Union[str, int]) -> Optional[str]:
        canonical = canonicalize_plmn(plmn)
        return self._entries.get(canonical) if canonical else None

    def entries(self) -> Mapping[str, str]:
        return self._entries


def _resolve_column(fieldnames, wanted: str) -> Optional[str]:
    for name in fieldnames or ():
        if name is not None and name.strip().casefold() == wanted.strip().casefold():
            return name
    return None


def detect_delimiter(header_line: str) -> str:
    """Tab when the header has more tabs than commas, else comma"""
    return "\t" if header_line.count("\t") > header_line.count(",") else ","


def load_whitelist(
    path: Union[str, Path],
    accepted_groups: Iterable[str],
    id_column: str = "PLMN",
    group_column: str = "Group",
    delimiter: Optional[str] = None,
) -> PLMNWhitelist:
    """Read the reference dataset from a delimited text file.

    Without an explicit ``delimiter`` the header line decides between tab
    and comma.
    """
    csv_file = Path(path)
    if not csv_file.exists():
        raise CoverageConfigurationError(f"Whitelist file not found: {csv_file}")

    with open(csv_file, "r", encoding="utf-8-sig", newline="") as f:
        if not delimiter:
            delimiter = detect_delimiter(f.readline())
            f.seek(0)
            logger.info(f"Whitelist {csv_file.name}: detected {delimiter!r} delimiter")
        reader = csv.DictReader(f, delimiter=delimiter)
        id_key = _resolve_column(reader.fieldnames, id_column)
        group_key = _resolve_column(reader.fieldnames, group_column)
        if id_key is None or group_key is None:
            raise CoverageConfigurationError(
                f"Whitelist file {csv_file} needs columns '{id_column}' and '{group_column}', "
                f"found {reader.fieldnames}"
            )
        return PLMNWhitelist.from_records(
            reader,
            accepted_groups,
            id_column=id_key,
            group_column=group_key,
            source=str(csv_file),
        )


class WhitelistStore:
    """Holds the current whitelist; refreshes replace it in one assignment"""

    def __init__(self, whitelist: Optional[PLMNWhitelist] = None):
        self._current = whitelist if whitelist is not None else PLMNWhitelist.empty()
        self._swap_lock = threading.Lock()

    @property
    def current(self) -> PLMNWhitelist:
        return self._current

    def swap(self, whitelist: PLMNWhitelist) -> PLMNWhitelist:
        """Install a new whitelist and return the one it replaced"""
        with self._swap_lock:
            previous, self._current = self._current, whitelist
        logger.info(f"Whitelist swapped: {previous.size} -> {whitelist.size} entries")
        return previous
