import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .types import CellMode, JsonCell, NoteSet, SolvedState

if TYPE_CHECKING:
    from .grid import Grid


@dataclass(frozen=True)
class CellSnapshot:
    row: int
    col: int
    value: Optional[int]
    mode: CellMode
    guess: Optional[int] = None
    notes: frozenset[int] = frozenset()
    wrong: bool = False
    revealed: bool = False


@dataclass(frozen=True)
class CellUserData:
    guess: Optional[int] = None
    notes: frozenset[int] = frozenset()


class Cell:
    def __init__(
        self,
        row: int,
        col: int,
        grid: "Grid",
        mode: CellMode = CellMode.USER,
        value: Optional[int] = None,
    ) -> None:
        self.row = row
        self.col = col
        self._grid_ref = weakref.ref(grid)
        # fixed after puzzle load
        self.value = value
        self.mode = mode
        # derived, only set when checking
        self.wrong = False
        self.hint: Optional[int] = None
        self.revealed = False
        # working data, edited by the player
        self.guess: Optional[int] = None
        self.notes: NoteSet = set()

    def __repr__(self) -> str:
        return f"Cell(row={self.row}, col={self.col}, mode={self.mode.name}, value={self.value}, guess={self.guess})"

    @property
    def size(self) -> int:
        grid = self._grid_ref()
        return grid.size if grid is not None else 0

    def is_editable(self) -> bool:
        return self.mode == CellMode.USER

    def is_active(self) -> bool:
        grid = self._grid_ref()
        return grid is not None and grid.selected == (self.row, self.col)

    def set_guess(self, digit: int) -> None:
        if not self.is_editable():
            return
        self.wrong = False
        self.hint = None
        if self.guess == digit:
            self.guess = None
            # A lone note would be promoted straight back into a guess.
            if len(self.notes) == 1:
                self.notes.clear()
        else:
            self.guess = digit
        self.render()

    def set_note(self, digit: int) -> None:
        if not self.is_editable():
            return
        self.wrong = False
        self.hint = None
        self.guess = None
        if digit in self.notes:
            self.notes.discard(digit)
        else:
            self.notes.add(digit)
        self.render()

    def toggle_all_or_no_notes(self) -> None:
        # Only an existing guess blocks this; editability is not checked here.
        if self.guess is not None:
            return
        if not self.notes:
            self.notes.update(range(1, self.size + 1))
        elif len(self.notes) == self.size:
            self.notes.clear()
        self.render()

    def clear(self) -> None:
        if not self.is_editable():
            return
        if self.guess is not None:
            self.guess = None
        else:
            self.notes.clear()
        self.wrong = False
        self.hint = None
        self.render()

    def solved_state(self) -> SolvedState:
        if not self.is_editable():
            return SolvedState.FIXED
        if self.guess is None:
            return SolvedState.BLANK
        if self.guess == self.value:
            return SolvedState.CORRECT
        return SolvedState.INCORRECT

    def is_solved(self) -> bool:
        return self.solved_state() in {SolvedState.FIXED, SolvedState.CORRECT}

    def check_wrong(self, include_notes: bool = False) -> None:
        state = self.solved_state()
        if state == SolvedState.INCORRECT:
            self.wrong = True
            self.render()
        elif state == SolvedState.BLANK and include_notes and self.notes and self.value not in self.notes:
            self.wrong = True
            self.render()

    def reveal(self) -> None:
        self.revealed = True
        self.wrong = self.solved_state() == SolvedState.INCORRECT
        self.render()

    def set_hint(self, digit: Optional[int]) -> None:
        self.hint = digit
        if digit and not self.notes:
            self.notes.update(range(1, self.size + 1))
        self.render()

    def snapshot(self) -> CellSnapshot:
        return CellSnapshot(
            row=self.row,
            col=self.col,
            value=self.value,
            mode=self.mode,
            guess=self.guess,
            notes=frozenset(self.notes),
            wrong=self.wrong,
            revealed=self.revealed,
        )

    def restore_from(self, source: "CellSnapshot | CellUserData") -> None:
        self.guess = source.guess
        self.notes = set(source.notes)

    def reset(self, template: "Optional[CellSnapshot | CellUserData]" = None) -> None:
        self.guess = None
        self.notes = set()
        self.wrong = False
        self.hint = None
        self.revealed = False
        if template is not None:
            self.restore_from(template)
        self.render()

    def user_data(self) -> CellUserData:
        return CellUserData(guess=self.guess, notes=frozenset(self.notes))

    def to_json_array(self) -> JsonCell:
        if self.mode == CellMode.BLACK:
            return [0]
        if self.mode == CellMode.BLACK_KNOWN:
            return [-(self.value or 0)]
        if self.mode == CellMode.WHITE_KNOWN:
            return [self.value or 0]
        if self.guess is not None:
            return [self.guess]
        return sorted(self.notes)

    def render(self) -> None:
        grid = self._grid_ref()
        if grid is not None:
            grid.render_cell(self)
