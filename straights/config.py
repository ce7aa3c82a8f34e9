import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from .service import GridLayout


class EncoderSettings(BaseModel):
    compression_threshold: int = Field(default=48, ge=0, description="Minimum raw payload size in bytes before compression is tried")
    min_compression_ratio: float = Field(default=0.9, gt=0.0, le=1.0, description="Compressed/raw ratio a compressed payload must reach to be used")
    max_n: int = Field(default=31, ge=1, le=31, description="Largest grid size the state codec accepts")


class HistorySettings(BaseModel):
    max_stored_games: int = Field(default=50, ge=1, description="Number of saved games kept before the oldest are dropped")
    storage_prefix: str = Field(default="history.", min_length=1, description="Key prefix for saved games")


class GameSettings(BaseModel):
    min_grid_size: int = Field(default=4, ge=2, le=31)
    max_grid_size: int = Field(default=12, ge=2, le=31)
    default_grid_size: int = Field(default=9, ge=2, le=31)
    default_difficulty: int = Field(default=3, ge=1)
    default_layout: GridLayout = GridLayout.POINT_SYMMETRIC


class Settings(BaseModel):
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    game: GameSettings = Field(default_factory=GameSettings)


def load_settings(input_path: Optional[str] = None) -> Settings:
    if input_path is None:
        return Settings()
    path = Path(input_path)
    if not path.exists():
        return Settings()
    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"settings file is not valid JSON: {input_path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("settings JSON root must be an object")
    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"invalid settings in {input_path}: {exc}") from exc
