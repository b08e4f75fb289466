"""
Network identifier (PLMN) canonicalization.

Every place that compares network identifiers goes through
``canonicalize_plmn`` so the whitelist and the tower side always agree:

- keep digits only from the raw value
- accept only 5 or 6 digit results
- mcc = first 3 digits, mnc = the rest
- canonical form is mcc + mnc left-padded with zeros to 3 digits (6 digits)

Canonicalizing an already canonical identifier returns it unchanged.
"""
import re
from typing import Optional, Union

_NON_DIGITS = re.compile(r"\D")


def canonicalize_plmn(raw: Union[str, int, None]) -> Optional[str]:
    """Return the 6-digit canonical PLMN, or None when ``raw`` is not one."""
    if raw is None:
        return None
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) not in (5, 6):
        return None
    mcc, mnc = digits[:3], digits[3:]
    return mcc + mnc.zfill(3)


def plmn_from_parts(mcc: int, mnc: int) -> Optional[str]:
    """Canonical PLMN for numeric (mcc, mnc) as reported by tower datasets.

    Numeric network codes lose their leading zeros, so ``mnc=10`` and
    ``mnc=010`` are the same network here.
    """
    if mcc is None or mnc is None:
        return None
    if not (0 <= mcc <= 999) or not (0 <= mnc <= 999):
        return None
    return canonicalize_plmn(f"{mcc:03d}{mnc:02d}")
