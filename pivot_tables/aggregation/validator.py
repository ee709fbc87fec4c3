"""Validate pivot requests against source headers, and sanity-check results."""
from __future__ import annotations

import logging
from typing import Sequence

from .errors import PivotConfigError
from .models import PivotRequest, PivotResult

logger = logging.getLogger(__name__)


def validate_request(request: PivotRequest, header: Sequence[str]) -> None:
    """Check every configured field against the source header before scanning.

    An empty header (empty source) is accepted; the pivot is simply empty.
    Raises PivotConfigError on the first unknown field.
    """
    if not header:
        return
    known = set(header)

    for name in request.value_fields:
        if name not in known:
            raise PivotConfigError(f"value field '{name}' not found in source header")

    for name in request.group_fields:
        if name not in known:
            raise PivotConfigError(f"group field '{name}' not found in source header")

    for side, spec in (("include", request.include), ("exclude", request.exclude)):
        for name in spec:
            if name not in known:
                raise PivotConfigError(f"{side} filter field '{name}' not found in source header")


def validate_result(result: PivotResult) -> None:
    """Log warnings for results that break the aggregation invariants.

    Does not raise; the result is already computed.
    """
    if result.rows_aggregated > result.rows_scanned:
        logger.warning(
            "Aggregated row count (%s) exceeds scanned row count (%s)",
            result.rows_aggregated, result.rows_scanned,
        )

    total = 0
    for group in result.groups:
        counts = {acc.count for acc in group.accumulators}
        if len(counts) > 1:
            logger.warning("Group '%s' has unequal counts across value fields: %s", group.key.text, sorted(counts))
        total += max(counts, default=0)

    if result.groups and total != result.rows_aggregated:
        logger.warning(
            "Group counts sum to %s but %s row(s) were aggregated",
            total, result.rows_aggregated,
        )
