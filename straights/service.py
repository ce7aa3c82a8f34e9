import json
import re
from enum import Enum
from typing import Protocol

from pydantic import AliasChoices, BaseModel, Field, ValidationError


class GridLayout(str, Enum):
    POINT_SYMMETRIC = "PointSymmetric"
    DIAGONALLY_SYMMETRIC = "DiagonallySymmetric"
    HORIZONTALLY_SYMMETRIC = "HorizontallySymmetric"
    VERTICALLY_SYMMETRIC = "VerticallySymmetric"
    HORIZONTALLY_AND_VERTICALLY_SYMMETRIC = "HorizontallyAndVerticallySymmetric"
    RANDOM = "Random"
    UNIFORM = "Uniform"

    @property
    def api_value(self) -> int:
        return _LAYOUT_API_VALUES[self]


_LAYOUT_API_VALUES = {
    GridLayout.POINT_SYMMETRIC: 7,
    GridLayout.DIAGONALLY_SYMMETRIC: 3,
    GridLayout.HORIZONTALLY_SYMMETRIC: 4,
    GridLayout.VERTICALLY_SYMMETRIC: 5,
    GridLayout.HORIZONTALLY_AND_VERTICALLY_SYMMETRIC: 6,
    GridLayout.RANDOM: 0,
    GridLayout.UNIFORM: 1,
}

STATUS_OK = 0


class GenerateRequest(BaseModel):
    size: int = Field(..., ge=2, le=31, description="Side length of the grid to generate")
    difficulty: int = Field(..., ge=1, description="Difficulty level understood by the generator")
    layout: int = Field(..., description="API value of the black cell layout")


class GenerateResponse(BaseModel):
    status: int
    message: str = Field(default="", validation_alias=AliasChoices("message", "code"))


class HintRequest(BaseModel):
    puzzle: list[list[list[int]]] = Field(..., description="Grid as per-cell JSON arrays")

    def puzzle_as_json(self) -> str:
        return json.dumps(self.puzzle)


class HintResponse(BaseModel):
    status: int
    message: str = ""


class HintDescriptor(BaseModel):
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    number: int = Field(..., ge=1)
    rule: str
    direction: str = ""

    @classmethod
    def from_message(cls, message: str) -> "HintDescriptor":
        try:
            return cls.model_validate_json(message)
        except ValidationError as exc:
            raise ValueError(f"hint message is not a valid hint descriptor: {exc}") from exc

    @property
    def rule_type(self) -> str:
        return _split_pascal_case(self.rule)[0]

    @property
    def rule_name(self) -> str:
        return " ".join(_split_pascal_case(self.rule)[1:])

    @property
    def rule_target(self) -> str:
        if self.rule_type == "Block":
            return f"{self.direction} block"
        return "row" if self.direction == "horizontal" else "column"

    def describe(self) -> str:
        return f"Hint: {self.number} can be removed by applying the {self.rule_name} rule to the {self.rule_target}."


class PuzzleService(Protocol):
    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        ...

    async def generate_hint(self, request: HintRequest) -> HintResponse:
        ...


def _split_pascal_case(text: str) -> list[str]:
    return re.findall(r"[A-Z][^A-Z]*", text) or [text]
