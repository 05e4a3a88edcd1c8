"""Region catalog: the six overlapping thirds of a frame.

TOP / CENTER_HORIZ / BOTTOM split the frame into three horizontal bands.
LEFT / CENTER_VERT / RIGHT split it into three vertical bands. The two
partitions overlap spatially and are evaluated independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Sequence

from backhand.errors import InvalidRegion


class Third(IntEnum):
    """Catalog slot of each region."""
    TOP = 0
    CENTER_HORIZ = 1
    BOTTOM = 2
    LEFT = 3
    CENTER_VERT = 4
    RIGHT = 5


HORIZONTAL_BANDS = (Third.TOP, Third.CENTER_HORIZ, Third.BOTTOM)
VERTICAL_BANDS = (Third.LEFT, Third.CENTER_VERT, Third.RIGHT)


@dataclass(frozen=True)
class Region:
    """A named rectangle over a frame. End bounds are exclusive."""
    name: str
    start_row: int
    end_row: int
    start_col: int
    end_col: int

    def __post_init__(self):
        if not (self.start_row < self.end_row and self.start_col < self.end_col):
            raise InvalidRegion(
                f"{self.name}: rows [{self.start_row}, {self.end_row}) "
                f"cols [{self.start_col}, {self.end_col}) is empty or inverted"
            )
        if self.start_row < 0 or self.start_col < 0:
            raise InvalidRegion(f"{self.name}: negative start bound")

    @property
    def cell_count(self) -> int:
        return (self.end_row - self.start_row) * (self.end_col - self.start_col)

    def fits(self, rows: int, cols: int) -> bool:
        return self.end_row <= rows and self.end_col <= cols


def _band_bounds(length: int, fractions: Optional[Sequence[float]]) -> list[int]:
    """Return the four cut points [0, a, b, length] along one axis."""
    if fractions is not None:
        if len(fractions) != 3:
            raise InvalidRegion(f"expected 3 partition fractions, got {len(fractions)}")
        if any(f <= 0 for f in fractions):
            raise InvalidRegion(f"partition fractions must be 3 positive weights, got {list(fractions)}")

    if fractions is None or len(set(fractions)) == 1:
        step = length // 3
        return [0, step, 2 * step, length]

    total = float(sum(fractions))
    first = int(length * fractions[0] / total)
    second = int(length * (fractions[0] + fractions[1]) / total)
    return [0, first, second, length]


class RegionCatalog:
    """The six regions for one frame geometry, addressable by `Third`."""

    def __init__(self, rows: int, cols: int, regions: dict[Third, Region]):
        self.rows = rows
        self.cols = cols
        self._regions = regions

    @classmethod
    def for_shape(
        cls,
        rows: int,
        cols: int,
        row_fractions: Optional[Sequence[float]] = None,
        col_fractions: Optional[Sequence[float]] = None,
    ) -> RegionCatalog:
        """Partition a `rows` x `cols` frame into the six thirds.

        With the default equal partition each band is `rows // 3` (or
        `cols // 3`) thick and the last band absorbs the remainder.
        """
        if rows < 3 or cols < 3:
            raise InvalidRegion(f"frame {rows}x{cols} is too small to split into thirds")

        r = _band_bounds(rows, row_fractions)
        c = _band_bounds(cols, col_fractions)

        regions: dict[Third, Region] = {}
        for i, third in enumerate(HORIZONTAL_BANDS):
            regions[third] = Region(third.name, r[i], r[i + 1], 0, cols)
        for i, third in enumerate(VERTICAL_BANDS):
            regions[third] = Region(third.name, 0, rows, c[i], c[i + 1])

        return cls(rows, cols, regions)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    def __getitem__(self, third: Third) -> Region:
        return self._regions[Third(third)]

    def __iter__(self) -> Iterator[Region]:
        for third in Third:
            yield self._regions[third]

    def __len__(self) -> int:
        return len(self._regions)
