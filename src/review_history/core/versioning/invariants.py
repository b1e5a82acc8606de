"""
SCD-2 invariant checks over an in-memory set of history rows.
"""

from collections import defaultdict
from typing import Iterable

from review_history.core.models import HistoryEntry, InvariantReport


def check_history_invariants(entries: Iterable[HistoryEntry]) -> InvariantReport:
    """
    Check single-current and version-contiguity invariants.

    Args:
        entries: All history rows

    Returns:
        InvariantReport listing every offending business key
    """
    versions: dict[str, list[int]] = defaultdict(list)
    current_counts: dict[str, int] = defaultdict(int)
    total = 0

    for entry in entries:
        total += 1
        versions[entry.business_key].append(entry.version)
        if entry.is_current:
            current_counts[entry.business_key] += 1

    report = InvariantReport(total_rows=total, business_keys=len(versions))
    for key in sorted(versions):
        count = current_counts.get(key, 0)
        if count > 1:
            report.multiple_current[key] = count
        elif count == 0:
            report.missing_current.append(key)
        if sorted(versions[key]) != list(range(1, len(versions[key]) + 1)):
            report.version_gaps.append(key)

    return report
