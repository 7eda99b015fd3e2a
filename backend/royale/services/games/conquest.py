"""Territory resolution for conquest rounds.

All functions are pure over the grid/claims they are given; the scheduler
owns when they run and what gets broadcast.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .state import GRID_SIZE, SPECIAL_CELL_COUNT, SpecialCell


Cell = Tuple[int, int]
Grid = List[List[Optional[str]]]


def generate_special_cells(rng, count: int = SPECIAL_CELL_COUNT, size: int = GRID_SIZE) -> List[SpecialCell]:
    """Place ``count`` multiplier cells at distinct positions: first half 2x, second half 3x."""
    cells: List[SpecialCell] = []
    taken = set()
    while len(cells) < count:
        x = rng.randrange(size)
        y = rng.randrange(size)
        if (x, y) in taken:
            continue
        taken.add((x, y))
        cells.append(SpecialCell(x=x, y=y, multiplier=2 if len(cells) < count / 2 else 3))
    return cells


def cell_multiplier(special_cells: Sequence[SpecialCell], x: int, y: int) -> int:
    for cell in special_cells:
        if cell.x == x and cell.y == y:
            return cell.multiplier
    return 1


def _coord(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def sanitize_actions(actions, grid: Grid) -> List[Cell]:
    """Keep the claimable coordinates of a submitted action list.

    Malformed entries, out-of-grid cells, cells that already have an owner and
    repeats within the same list are dropped; the rest are kept in order.
    """
    if not isinstance(actions, (list, tuple)):
        return []
    size = len(grid)
    kept: List[Cell] = []
    seen = set()
    for action in actions:
        if isinstance(action, dict):
            x, y = _coord(action.get('x')), _coord(action.get('y'))
        elif isinstance(action, (list, tuple)) and len(action) == 2:
            x, y = _coord(action[0]), _coord(action[1])
        else:
            continue
        if x is None or y is None or not (0 <= x < size and 0 <= y < size):
            continue
        if grid[x][y] is not None or (x, y) in seen:
            continue
        seen.add((x, y))
        kept.append((x, y))
    return kept


def resolve_claims(grid: Grid, claims: Dict[str, Iterable[Cell]]) -> Tuple[Dict[Cell, str], List[Cell]]:
    """Assign uncontested cells and collect conflicts.

    Mutates ``grid`` in place. A cell claimed by exactly one distinct player
    goes to that player; a cell claimed by two or more stays unowned and is
    reported once in the conflict list.
    """
    claimants: Dict[Cell, List[str]] = OrderedDict()
    for player_id, cells in claims.items():
        for cell in cells:
            owners = claimants.setdefault(cell, [])
            if player_id not in owners:
                owners.append(player_id)

    awarded: Dict[Cell, str] = {}
    conflicts: List[Cell] = []
    for (x, y), owners in claimants.items():
        if len(owners) == 1:
            grid[x][y] = owners[0]
            awarded[(x, y)] = owners[0]
        else:
            conflicts.append((x, y))
    return awarded, conflicts


def compute_territories(grid: Grid, special_cells: Sequence[SpecialCell], player_ids: Iterable[str]) -> Dict[str, int]:
    territories = {pid: 0 for pid in player_ids}
    for x, row in enumerate(grid):
        for y, owner in enumerate(row):
            if owner in territories:
                territories[owner] += cell_multiplier(special_cells, x, y)
    return territories
