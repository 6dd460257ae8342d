# src/drywell/io/outputs.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from drywell.pipelines.calibrate import CalibrationRun
from drywell.utils.heartbeat import write_json_atomic


@dataclass(frozen=True)
class RunPaths:
    out_dir: Path

    @property
    def manifest_json(self) -> Path:
        return self.out_dir / "manifest.json"

    @property
    def observed_csv(self) -> Path:
        return self.out_dir / "observed_units.csv"

    @property
    def targets_csv(self) -> Path:
        return self.out_dir / "calibration_targets.csv"

    @property
    def comparison_csv(self) -> Path:
        return self.out_dir / "model_comparison.csv"

    @property
    def predictions_dir(self) -> Path:
        return self.out_dir / "predictions"

    def prediction_csv(self, model: str, tessellation: str) -> Path:
        return self.predictions_dir / f"{model}_{tessellation}.csv"


def write_run(run: CalibrationRun, out_dir: Path, *, overwrite: bool = False) -> Dict[str, str]:
    """
    Write per-unit tables, the model comparison and manifest.json.
    Returns the written paths (also recorded under manifest['outputs']).
    """
    paths = RunPaths(out_dir=Path(out_dir))
    if not overwrite and paths.manifest_json.exists():
        raise FileExistsError(
            f"Outputs already exist under {paths.out_dir}. Use --overwrite or pick a new out dir."
        )
    paths.predictions_dir.mkdir(parents=True, exist_ok=True)

    run.observed.to_csv(paths.observed_csv, index=False)
    run.targets.to_frame().to_csv(paths.targets_csv, index=False)
    run.comparison.to_csv(paths.comparison_csv, index=False)

    outputs: Dict[str, str] = {
        "observed_csv": str(paths.observed_csv),
        "targets_csv": str(paths.targets_csv),
        "comparison_csv": str(paths.comparison_csv),
    }
    for model, tables in run.predictions.items():
        for tess, df in tables.items():
            p = paths.prediction_csv(model, tess)
            df.to_csv(p, index=False)
            outputs[f"predictions.{model}.{tess}"] = str(p)

    manifest = dict(run.manifest)
    manifest["outputs"] = outputs
    write_json_atomic(paths.manifest_json, manifest)
    return outputs
