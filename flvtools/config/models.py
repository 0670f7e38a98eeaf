from typing import Optional
from pydantic import BaseModel, Field

class GeneralConfig(BaseModel):
    debug: bool = False
    log_path: Optional[str] = None
    delete_partial_output: bool = True

class CutConfig(BaseModel):
    """Time-range extraction settings."""
    ignore_bad_tags: bool = False

class MergeConfig(BaseModel):
    """Overlap splice settings. Both tolerances are empirical defaults."""
    skip_frames: int = Field(default=100, ge=0)
    time_clue_tolerance_ms: int = Field(default=500, gt=0)
    tail_corruption_tolerance_pct: float = Field(default=5.0, ge=0.0, le=100.0)
    expected_junction_min_pct: float = Field(default=80.0, ge=0.0, le=100.0)

class FixSeekConfig(BaseModel):
    anchor_tags: int = Field(default=2, ge=0)  # Tags kept after metadata in the head

class InspectConfig(BaseModel):
    tolerant: bool = False
    gap_threshold_ms: int = Field(default=500, ge=0)

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    cut: CutConfig = Field(default_factory=CutConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)
    fix_seek: FixSeekConfig = Field(default_factory=FixSeekConfig)
    inspect: InspectConfig = Field(default_factory=InspectConfig)
