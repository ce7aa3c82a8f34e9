from enum import Enum, IntEnum
from typing import Optional


class CellMode(IntEnum):
    USER = 0
    WHITE_KNOWN = 1
    BLACK = 2
    BLACK_KNOWN = 3


class SolvedState(Enum):
    FIXED = "fixed"
    BLANK = "blank"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class FormatTag(IntEnum):
    LEGACY_V1 = 1
    FIXED_V2 = 2
    VARIABLE_V128 = 128


Position = tuple[int, int]
NoteSet = set[int]
BoolGrid = list[list[bool]]
JsonCell = list[int]
JsonGrid = list[list[JsonCell]]
GridRows = list[str]
CellDefinitionGrid = list[list[tuple[CellMode, Optional[int]]]]
