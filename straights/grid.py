import math
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .cell import Cell
from .encoder import encode_grid_to_base64url
from .types import BoolGrid, CellDefinitionGrid, CellMode, JsonGrid, NoteSet, Position
from .utils import format_grid_rows


RenderCallback = Callable[[Cell], None]


@dataclass(frozen=True)
class HintCheck:
    is_solved: bool
    is_wrong: bool


def _now_millis() -> int:
    return int(time.time() * 1000)


class Grid:
    def __init__(self, size: int = 0, on_render: Optional[RenderCallback] = None) -> None:
        self.size = size
        self.on_render = on_render
        self.cells: list[list[Cell]] = [[Cell(r, c, self) for c in range(size)] for r in range(size)]
        self.selected: Optional[Position] = None
        self.is_solved = False
        self.check_count = 0
        self.hint_count = 0
        self.created = _now_millis()
        self.epoch = 0
        self._black_mask: Optional[BoolGrid] = None
        self._black_mask_code: Optional[str] = None

    @classmethod
    def from_definition(
        cls,
        size: int,
        definition: CellDefinitionGrid,
        on_render: Optional[RenderCallback] = None,
    ) -> "Grid":
        grid = cls(size=size, on_render=on_render)
        for r in range(size):
            for c in range(size):
                mode, value = definition[r][c]
                grid.cells[r][c] = Cell(r, c, grid, mode=mode, value=value)
                grid.cells[r][c].render()
        return grid

    def get(self, row: int, col: int) -> Cell:
        return self.cells[row][col]

    def iter_cells(self) -> Iterator[Cell]:
        for row in self.cells:
            yield from row

    def editable_cells(self) -> list[Cell]:
        return [cell for cell in self.iter_cells() if cell.is_editable()]

    def render_cell(self, cell: Cell) -> None:
        if self.on_render is not None:
            self.on_render(cell)

    def invalidate(self) -> None:
        """Drop the results of any restore that is still waiting on the codec."""
        self.epoch += 1

    # selection

    def active_cell(self) -> Optional[Cell]:
        if self.selected is None:
            return None
        return self.get(*self.selected)

    def select(self, row: int, col: int) -> None:
        if self.is_solved or not self.get(row, col).is_editable():
            return
        self._deselect()
        self.selected = (row, col)
        self.get(row, col).render()

    def move_selection(self, d_row: int, d_col: int) -> None:
        if self.selected is None:
            return
        row, col = self._find_next_editable_cell(*self.selected, d_row, d_col)
        self.select(row, col)

    def _find_next_editable_cell(self, row: int, col: int, d_row: int, d_col: int) -> Position:
        new_row, new_col = row, col
        while True:
            new_row = (new_row + d_row) % self.size
            new_col = (new_col + d_col) % self.size
            if self.get(new_row, new_col).is_editable() or (new_row, new_col) == (row, col):
                return new_row, new_col

    def _deselect(self) -> None:
        active = self.active_cell()
        if active is not None:
            self.selected = None
            active.render()

    # checking

    def check_solved(self) -> None:
        if self.is_solved:
            return
        finished = True
        for cell in self.iter_cells():
            if cell.guess is None and len(cell.notes) == 1:
                cell.guess = next(iter(cell.notes))
                cell.notes.clear()
                cell.render()
            if not cell.is_solved():
                finished = False
        self.is_solved = finished
        if self.is_solved:
            self._deselect()

    def check(self) -> None:
        self.check_solved()
        if self.is_solved:
            return
        self.check_count += 1
        self._check_wrong(include_notes=False)

    def check_for_hint(self) -> HintCheck:
        self.check_solved()
        if self.is_solved:
            return HintCheck(is_solved=True, is_wrong=False)
        self.hint_count += 1
        is_wrong = self._check_wrong(include_notes=False) or self._check_wrong(include_notes=True)
        return HintCheck(is_solved=False, is_wrong=is_wrong)

    def _check_wrong(self, include_notes: bool) -> bool:
        found = False
        for cell in self.iter_cells():
            cell.check_wrong(include_notes)
            if cell.wrong:
                found = True
        return found

    def show_solution(self) -> None:
        if self.is_solved:
            return
        self.is_solved = True
        self._deselect()
        for cell in self.iter_cells():
            cell.reveal()

    def restart(self) -> None:
        self.invalidate()
        self.is_solved = False
        for cell in self.iter_cells():
            cell.reset()

    def percent_solved(self) -> int:
        editable = self.editable_cells()
        if not editable:
            return 100
        solved = 0.0
        for cell in editable:
            if cell.is_solved():
                solved += 1
            elif cell.notes:
                solved += 1 - (len(cell.notes) - 1) / max(self.size - 1, 1)
        return math.floor(solved / len(editable) * 100)

    # derived data

    def black_mask(self) -> BoolGrid:
        if self._black_mask is None:
            self._black_mask = [
                [cell.mode in {CellMode.BLACK, CellMode.BLACK_KNOWN} for cell in row] for row in self.cells
            ]
        return [list(row) for row in self._black_mask]

    def black_mask_code(self) -> str:
        if self._black_mask_code is None:
            self._black_mask_code = encode_grid_to_base64url(self.black_mask())
        return self._black_mask_code

    def state(self) -> list[NoteSet]:
        return [{cell.guess} if cell.guess is not None else set(cell.notes) for cell in self.editable_cells()]

    def to_json_array(self) -> JsonGrid:
        return [[cell.to_json_array() for cell in row] for row in self.cells]

    def grid_rows(self) -> list[str]:
        return format_grid_rows([[_cell_symbol(cell) for cell in row] for row in self.cells])


def _cell_symbol(cell: Cell) -> str:
    if cell.mode == CellMode.BLACK:
        return "#"
    if cell.mode == CellMode.BLACK_KNOWN:
        return f"#{cell.value}"
    if cell.mode == CellMode.WHITE_KNOWN:
        return str(cell.value)
    if cell.guess is not None:
        return str(cell.guess)
    return "."
