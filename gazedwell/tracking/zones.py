"""
Zone Classifier

Maps a filtered gaze position to a discrete grid zone. Two addressing modes:

- ``bands``: the screen width is cut into equal thirds (left / center / right)
  and the height into 2 (up / down) or 3 (up / middle / down) equal bands.
  Used for coarse menus.
- ``nearest``: an N x N grid laid over a container; the cell whose geometric
  center is closest to the position wins. Positions outside the container
  yield no zone.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from gazedwell import constants as const
from gazedwell.exceptions import ConfigurationError


GRID_MODES = ("bands", "nearest")


@dataclass(frozen=True)
class Zone:
    """A discrete grid region. Bands use names, N x N grids use indices."""
    row: Union[str, int]
    col: Union[str, int]

    def __str__(self) -> str:
        return f"{self.row}-{self.col}"

    @classmethod
    def parse(cls, value) -> "Zone":
        """Build a zone from a Zone, a (row, col) pair, a {"row", "col"} dict or a "row-col" string."""
        if isinstance(value, Zone):
            return value
        if isinstance(value, dict):
            if 'row' not in value or 'col' not in value:
                raise ValueError(f"invalid zone {value!r}, expected 'row' and 'col' keys")
            return cls(value['row'], value['col'])
        if isinstance(value, str):
            row, sep, col = value.partition("-")
            if not sep or not row or not col:
                raise ValueError(f"invalid zone {value!r}, expected 'row-col'")
            return cls(int(row) if row.isdigit() else row, int(col) if col.isdigit() else col)
        row, col = value
        return cls(row, col)


@dataclass(frozen=True)
class GridSpec:
    """Describes how positions are addressed."""
    mode: str = "bands"
    rows: int = 3
    size: int = const.DEFAULT_GRID_SIZE

    def __post_init__(self):
        if self.mode not in GRID_MODES:
            raise ConfigurationError(f"grid mode must be one of {GRID_MODES}, got {self.mode!r}")
        if self.mode == "bands" and self.rows not in (2, 3):
            raise ConfigurationError(f"banded layout supports 2 or 3 rows, got {self.rows}")
        if self.mode == "nearest" and int(self.size) < 1:
            raise ConfigurationError(f"grid size must be >= 1, got {self.size}")

    @classmethod
    def bands(cls, rows: int = 3) -> "GridSpec":
        return cls(mode="bands", rows=rows)

    @classmethod
    def nearest(cls, size: int) -> "GridSpec":
        return cls(mode="nearest", size=size)

    def zones(self):
        """All zones addressable by this grid, row-major."""
        if self.mode == "bands":
            row_names = const.BAND_ROWS_3 if self.rows == 3 else const.BAND_ROWS_2
            return [Zone(r, c) for r in row_names for c in const.BAND_COLUMNS]
        return [Zone(r, c) for r in range(self.size) for c in range(self.size)]


@dataclass(frozen=True)
class Bounds:
    """Container rectangle in screen pixels."""
    left: float
    top: float
    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"container bounds must have positive size, got {self.width}x{self.height}"
            )

    def contains(self, x: float, y: float) -> bool:
        return (self.left <= x < self.left + self.width
                and self.top <= y < self.top + self.height)


def _xy(pos) -> Tuple[float, float]:
    if hasattr(pos, "x") and hasattr(pos, "y"):
        return float(pos.x), float(pos.y)
    return float(pos[0]), float(pos[1])


def classify(
    pos,
    screen_width: float,
    screen_height: float,
    grid: GridSpec,
    bounds: Optional[Bounds] = None,
) -> Optional[Zone]:
    """
    Classify a position into a zone.

    Args:
        pos: GazeSample or (x, y) in screen pixels
        screen_width: Screen width in pixels
        screen_height: Screen height in pixels
        grid: Addressing mode
        bounds: Grid container for ``nearest`` mode (defaults to the whole screen)

    Returns:
        The zone, or None when a ``nearest`` position falls outside the container
    """
    if screen_width <= 0 or screen_height <= 0:
        raise ConfigurationError(
            f"screen size must be positive, got {screen_width}x{screen_height}"
        )

    x, y = _xy(pos)

    if grid.mode == "bands":
        if x < screen_width / 3:
            col = "left"
        elif x < 2 * screen_width / 3:
            col = "center"
        else:
            col = "right"

        if grid.rows == 3:
            if y < screen_height / 3:
                row = "up"
            elif y < 2 * screen_height / 3:
                row = "middle"
            else:
                row = "down"
        else:
            row = "up" if y < screen_height / 2 else "down"

        return Zone(row, col)

    box = bounds or Bounds(0.0, 0.0, float(screen_width), float(screen_height))
    if not box.contains(x, y):
        return None

    rel_x = x - box.left
    rel_y = y - box.top
    cell_w = box.width / grid.size
    cell_h = box.height / grid.size

    best: Optional[Zone] = None
    best_dist_sq = float("inf")
    for row in range(grid.size):
        center_y = row * cell_h + cell_h / 2
        for col in range(grid.size):
            center_x = col * cell_w + cell_w / 2
            dist_sq = (rel_x - center_x) ** 2 + (rel_y - center_y) ** 2
            if dist_sq < best_dist_sq:
                best_dist_sq = dist_sq
                best = Zone(row, col)

    return best


class ZoneClassifier:
    """Binds a grid spec to the current screen / container geometry."""

    def __init__(
        self,
        grid: GridSpec,
        screen_width: float = const.DEFAULT_SCREEN_WIDTH,
        screen_height: float = const.DEFAULT_SCREEN_HEIGHT,
        bounds: Optional[Bounds] = None,
    ):
        self.grid = grid
        self.resize(screen_width, screen_height, bounds)

    def resize(self, screen_width: float, screen_height: float, bounds: Optional[Bounds] = None):
        """Update geometry, e.g. after a window resize."""
        if screen_width <= 0 or screen_height <= 0:
            raise ConfigurationError(
                f"screen size must be positive, got {screen_width}x{screen_height}"
            )
        self.screen_width = float(screen_width)
        self.screen_height = float(screen_height)
        self.bounds = bounds

    def classify(self, pos) -> Optional[Zone]:
        return classify(pos, self.screen_width, self.screen_height, self.grid, self.bounds)
