from __future__ import annotations

from reseg.core.config import load_config
from reseg.features.pipeline.service import PipelineResult, run_pipeline


def run(config_path: str) -> PipelineResult:
    cfg = load_config(config_path)
    return run_pipeline(cfg)
