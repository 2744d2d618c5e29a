"""Geohash rows to drawable cells for the map layers.

Rows arrive as ``[geohash, weight]`` or ``[geohash]`` sequences; the renderer
draws one rectangle per cell and colours it by weight.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from geohash_codec import Bounds, GeohashError, InvalidGeohash, bounds, contained

logger = logging.getLogger(__name__)


class InvalidWeight(GeohashError):
    pass


class WeightedCell(NamedTuple):
    geohash: str
    bounds: Bounds
    weight: float | None = None


def weighted_cells(
    rows: Iterable[Sequence],
    geohash_column: int = 0,
    weight_column: int | None = 1,
    strict: bool = False,
) -> list[WeightedCell]:
    """Convert data rows into cells with their bounds and weight.

    Rows with a malformed geohash or a weight that is not a finite number are
    logged and skipped, unless ``strict`` is set, in which case the error
    propagates.
    """
    cells = []
    for index, row in enumerate(rows):
        try:
            if len(row) <= geohash_column:
                raise InvalidGeohash(f"Row has no column {geohash_column}")
            geohash = row[geohash_column]
            cell_bounds = bounds(geohash)
            weight = None
            if weight_column is not None and len(row) > weight_column:
                weight = _weight(row[weight_column])
        except GeohashError as exc:
            if strict:
                raise
            logger.warning("Skipping row %d: %s", index, exc)
            continue
        cells.append(WeightedCell(geohash.lower(), cell_bounds, weight))
    return cells


def _weight(value) -> float | None:
    if value is None:
        return None
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise InvalidWeight(f"Invalid weight {value!r}") from None
    if not math.isfinite(weight):
        raise InvalidWeight(f"Weight must be finite, got {value!r}")
    return weight


def weight_extent(cells: Iterable[WeightedCell]) -> tuple[float, float] | None:
    """Return (min, max) of the known weights, or None when there are none."""
    weights = [cell.weight for cell in cells if cell.weight is not None]
    if not weights:
        return None
    return min(weights), max(weights)


def visible_cells(
    w: float,
    n: float,
    e: float,
    s: float,
    precision: int = 1,
    max_cells: int | None = None,
) -> list[tuple[str, Bounds]]:
    """Cells covering a viewport, paired with the rectangle to draw for each."""
    return [(geohash, bounds(geohash)) for geohash in contained(w, n, e, s, precision, max_cells)]
