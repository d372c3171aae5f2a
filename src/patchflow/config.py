"""Pipeline settings."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, NonNegativeInt, PositiveFloat, PositiveInt, model_validator


class PatchConfig(BaseModel):
    """
    Configuration for tiling and scheduling.
    tile_size and min_overlap drive the planner, workers sizes the resource
    pool and timeout (seconds) bounds how long tiles may wait for a resource.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tile_size: PositiveInt
    min_overlap: NonNegativeInt = 0
    workers: PositiveInt = 1
    timeout: PositiveFloat | None = None

    @model_validator(mode="after")
    def _check_overlap(self) -> PatchConfig:
        if self.min_overlap >= self.tile_size:
            raise ValueError(
                f"min_overlap ({self.min_overlap}) must be less than tile size ({self.tile_size})."
            )
        return self

    @classmethod
    def from_file(cls, path: str | Path) -> PatchConfig:
        """Load settings from a JSON file."""
        with open(path, encoding="utf-8") as handle:
            return cls.model_validate(json.load(handle))
