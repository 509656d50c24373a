"""Minimal ``major.minor.patch`` comparison used to gate updates."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def _parts(version: str) -> list[str]:
    parts = version.removeprefix("v").split(".")
    while len(parts) < 3:
        parts.append("0")
    return parts[:3]


def is_greater(current: str, candidate: str) -> bool:
    """Return True if ``candidate`` is a strictly newer version than ``current``.

    Missing components count as zero. Any non-numeric component makes the
    comparison inconclusive, which is reported as False.
    """
    for cur, cand in zip(_parts(current), _parts(candidate), strict=True):
        try:
            cur_num, cand_num = int(cur), int(cand)
        except ValueError:
            logger.debug("Cannot compare versions %r and %r", current, candidate)
            return False
        if cand_num != cur_num:
            return cand_num > cur_num
    return False
