from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class FaceHealthConfig(BaseModel):
    min_samples: int = Field(default=7, ge=2)
    lambda_grid: Tuple[float, ...] = (0.1, 1.0, 10.0, 100.0)
    timestamp_resolution_seconds: float = Field(default=1.0, gt=0)
    allow_target_overwrite: bool = False
    max_workers: int = Field(default=1, ge=1)
    learning_algo: str = "solve"
    storage_dir: Optional[Path] = None
    log_level: str = "INFO"

    @field_validator("lambda_grid")
    @classmethod
    def _positive_grid(cls, grid):
        if not grid:
            raise ValueError("lambda_grid must not be empty")
        if any(not lam > 0 for lam in grid):
            raise ValueError("every lambda in lambda_grid must be > 0")
        return tuple(sorted(set(grid)))

    @field_validator("learning_algo")
    @classmethod
    def _known_algo(cls, algo):
        if algo not in ("solve", "inv"):
            raise ValueError(f"unknown learning_algo '{algo}'")
        return algo

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, level):
        return level.upper()
