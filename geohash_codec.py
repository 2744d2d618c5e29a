import logging
import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import NamedTuple

logger = logging.getLogger(__name__)

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"  # Standard Base32 characters
BITS_PER_CHAR = 5
MAX_PRECISION = 12  # 12 is standard max precision

_DECODE_MAP = {char: index for index, char in enumerate(BASE32)}

# Rows are indexed by len(geohash) % 2.
NEIGHBOUR = {
    "n": ("p0r21436x8zb9dcf5h7kjnmqesgutwvy", "bc01fg45238967deuvhjyznpkmstqrwx"),
    "s": ("14365h7k9dcfesgujnmqp0r2twvyx8zb", "238967debc01fg45kmstqrwxuvhjyznp"),
    "e": ("bc01fg45238967deuvhjyznpkmstqrwx", "p0r21436x8zb9dcf5h7kjnmqesgutwvy"),
    "w": ("238967debc01fg45kmstqrwxuvhjyznp", "14365h7k9dcfesgujnmqp0r2twvyx8zb"),
}
BORDER = {
    "n": ("prxz", "bcfguvyz"),
    "s": ("028b", "0145hjnp"),
    "e": ("bcfguvyz", "prxz"),
    "w": ("0145hjnp", "028b"),
}


class GeohashError(ValueError):
    """Base class for geohash errors."""


class InvalidGeohash(GeohashError):
    pass


class InvalidDirection(GeohashError):
    pass


class TooManyCells(GeohashError):
    """Raised when a bounding box tiles into more cells than allowed."""


class LatLon(NamedTuple):
    lat: float
    lon: float


class Bounds(NamedTuple):
    sw: LatLon
    ne: LatLon


def symbol_for(bits: int) -> str:
    """Map a 5-bit value to its Base32 symbol."""
    return BASE32[bits]


def bits_for(ch: str) -> int:
    """Map a Base32 symbol back to its 5-bit value."""
    try:
        return _DECODE_MAP[ch]
    except KeyError:
        raise InvalidGeohash(f"Invalid geohash character {ch!r}") from None


def _finite(value, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidGeohash(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise InvalidGeohash(f"{name} must be finite, got {value}")
    return value


def _encode_bits(lat: float, lon: float, bit_length: int) -> list[int]:
    """Encode a coordinate pair into an interleaved bitstream, longitude first."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    even_bit = True

    res = []
    for _ in range(bit_length):
        interval, value = (lon_range, lon) if even_bit else (lat_range, lat)
        mid = (interval[0] + interval[1]) / 2
        if value > mid:
            interval[0] = mid
            res.append(1)
        else:
            interval[1] = mid
            res.append(0)
        even_bit = not even_bit
    return res


def _decode_ranges(geohash: str) -> tuple[list[float], list[float]]:
    """Replay the bisection driven by the bits of each symbol."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    even_bit = True

    for char in geohash:
        value = bits_for(char)
        for shift in range(BITS_PER_CHAR - 1, -1, -1):
            interval = lon_range if even_bit else lat_range
            mid = (interval[0] + interval[1]) / 2
            if (value >> shift) & 1:
                interval[0] = mid
            else:
                interval[1] = mid
            even_bit = not even_bit
    return lat_range, lon_range


def _check_geohash(geohash) -> str:
    if not isinstance(geohash, str) or not geohash:
        raise InvalidGeohash(f"Invalid geohash {geohash!r}")
    return geohash.lower()


def _round(value: float, places: int) -> float:
    # Ties round away from zero, like JavaScript's toFixed.
    quantum = Decimal(1).scaleb(-places)
    context = Context(prec=max(28, places + 8))
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=context))


def encode(lat: float, lon: float, precision: int | None = None) -> str:
    """Encode a latitude and longitude into a geohash.

    Without a precision, the shortest geohash (up to 12 characters) whose
    decoded point equals the input exactly is returned.
    """
    lat = _finite(lat, "Latitude")
    lon = _finite(lon, "Longitude")

    if precision is None:
        for p in range(1, MAX_PRECISION + 1):
            geohash = encode(lat, lon, p)
            if decode(geohash) == (lat, lon):
                return geohash
        logger.debug("No exact geohash for (%s, %s), using precision %d", lat, lon, MAX_PRECISION)
        return encode(lat, lon, MAX_PRECISION)

    precision = _finite(precision, "Precision")
    if precision != int(precision) or precision < 1:
        raise InvalidGeohash(f"Precision must be a positive whole number, got {precision}")
    precision = int(precision)

    bits = _encode_bits(lat, lon, precision * BITS_PER_CHAR)
    result = []
    for i in range(0, len(bits), BITS_PER_CHAR):
        value = 0
        for bit in bits[i : i + BITS_PER_CHAR]:
            value = (value << 1) | bit
        result.append(symbol_for(value))
    return "".join(result)


def bounds(geohash: str) -> Bounds:
    """Return the south-west and north-east corners of a geohash cell."""
    lat_range, lon_range = _decode_ranges(_check_geohash(geohash))
    return Bounds(
        sw=LatLon(lat_range[0], lon_range[0]),
        ne=LatLon(lat_range[1], lon_range[1]),
    )


def decode(geohash: str) -> LatLon:
    """Decode a geohash into the centre of its cell.

    Each coordinate is rounded to just enough decimal places to tell the cell
    apart from its neighbours: ``floor(2 - log10(width))``.
    """
    sw, ne = bounds(geohash)

    lat = (sw.lat + ne.lat) / 2
    lon = (sw.lon + ne.lon) / 2
    lat_places = math.floor(2 - math.log10(ne.lat - sw.lat))
    lon_places = math.floor(2 - math.log10(ne.lon - sw.lon))
    return LatLon(_round(lat, lat_places), _round(lon, lon_places))


def adjacent(geohash: str, direction: str) -> str:
    """Return the neighbouring cell of equal precision in a compass direction."""
    geohash = _check_geohash(geohash)
    if not isinstance(direction, str) or direction.lower() not in NEIGHBOUR:
        raise InvalidDirection(f"Invalid direction {direction!r}")
    direction = direction.lower()

    for char in geohash:
        bits_for(char)

    last = geohash[-1]
    parent = geohash[:-1]
    parity = len(geohash) % 2

    # Crossing the parent's edge moves the parent too.
    if last in BORDER[direction][parity] and parent:
        parent = adjacent(parent, direction)

    return parent + symbol_for(NEIGHBOUR[direction][parity].index(last))


def neighbours(geohash: str) -> dict[str, str]:
    """Compute the 8 neighbouring geohashes (N, NE, E, SE, S, SW, W, NW)."""
    n = adjacent(geohash, "n")
    s = adjacent(geohash, "s")
    return {
        "n": n,
        "ne": adjacent(n, "e"),
        "e": adjacent(geohash, "e"),
        "se": adjacent(s, "e"),
        "s": s,
        "sw": adjacent(s, "w"),
        "w": adjacent(geohash, "w"),
        "nw": adjacent(n, "w"),
    }


def contained(
    w: float,
    n: float,
    e: float,
    s: float,
    precision: int = 1,
    max_cells: int | None = None,
) -> list[str]:
    """List the cells covering a bounding box, row by row from the north-west.

    The walk assumes the cells form a rectangular grid: every row holds as
    many cells as the first one. This does not hold everywhere near the poles
    or across the antimeridian.
    """
    if math.isnan(n) or n > 89:
        n = 89
    e = min(e, 180)
    s = max(s, -89)
    w = max(w, -180)

    hash_nw = encode(n, w, precision)
    hash_ne = encode(n, e, precision)
    hash_se = encode(s, e, precision)

    result = []
    current = row_start = hash_nw
    col = max_col = 0
    while current != hash_se:
        result.append(current)
        if max_cells is not None and len(result) >= max_cells:
            raise TooManyCells(f"Bounding box covers more than {max_cells} cells at precision {precision}")
        col += 1
        if (not max_col and current == hash_ne) or (max_col and col >= max_col):
            max_col = col
            col = 0
            current = row_start = adjacent(row_start, "s")
        else:
            current = adjacent(current, "e")
    result.append(hash_se)

    logger.debug("Tiled %s..%s into %d cells", hash_nw, hash_se, len(result))
    return result


def calculate_width_degrees(n: int) -> float:
    """Approximate width of a geohash cell of length n, in degrees."""
    a = -1 if n % 2 == 0 else -0.5
    return 180 / 2 ** (2.5 * n + a)


def width(n: int) -> float:
    """Width in degrees of a geohash cell of length n, from its longitude bit count."""
    parity = n % 2
    return 180 / 2 ** ((5 * n + parity) // 2 - 1)


class Geohash:
    """Codec with a default precision and tiling limit; other calls pass straight through."""

    def __init__(self, precision: int | None = 5, max_cells: int | None = None):
        """Initialize Geohash encoder/decoder with given precision.

        A precision of None infers the shortest exact precision on encode.
        """
        if precision is not None and not 1 <= precision <= MAX_PRECISION:
            raise ValueError(f"Precision must be between 1 and {MAX_PRECISION}")
        if max_cells is not None and max_cells < 1:
            raise ValueError("max_cells must be positive")
        self.precision = precision
        self.max_cells = max_cells

    def encode(self, lat: float, lon: float) -> str:
        return encode(lat, lon, self.precision)

    def decode(self, geohash: str) -> LatLon:
        return decode(geohash)

    def bounds(self, geohash: str) -> Bounds:
        return bounds(geohash)

    def adjacent(self, geohash: str, direction: str) -> str:
        return adjacent(geohash, direction)

    def neighbours(self, geohash: str) -> dict[str, str]:
        return neighbours(geohash)

    def contained(self, w: float, n: float, e: float, s: float) -> list[str]:
        """Tile a bounding box at the configured precision (1 when inferring)."""
        return contained(w, n, e, s, self.precision or 1, self.max_cells)


if __name__ == "__main__":
    geo = Geohash(precision=6)
    encoded = geo.encode(41.878738, -87.6359612)  # Willis Tower
    decoded = geo.decode(encoded)
    cell = geo.bounds(encoded)
    neighbors = geo.neighbours(encoded)

    print(f"Encoded: {encoded}")
    print(f"Decoded: {decoded}")
    print(f"Bounds: {cell}")
    print(f"Neighbors: {neighbors}")
    print(f"Contained: {Geohash(precision=2).contained(-90, 45, -80, 40)}")
