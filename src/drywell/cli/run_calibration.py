# src/drywell/cli/run_calibration.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import print

from drywell.config.defaults import load_run_config
from drywell.errors import DrywellError
from drywell.io.inputs import load_inputs
from drywell.io.outputs import RunPaths, write_run
from drywell.pipelines.calibrate import run_calibration

app = typer.Typer(add_completion=False)


@app.command()
def run(
    config: Path = typer.Option(..., exists=True, help="YAML run config (model/filters/bounds/optimizer/sampling/io)."),
    out_dir: Optional[Path] = typer.Option(None, help="Override io.out_dir."),
    overwrite: bool = typer.Option(False, help="Replace outputs from a previous run."),
    allow_unconverged: bool = typer.Option(False, help="Exit 0 even if a model variant did not converge."),
):
    try:
        cfg = load_run_config(config, overrides={"io": {"out_dir": str(out_dir)}} if out_dir is not None else None)
    except DrywellError as e:
        print(f"[red]Invalid config:[/red] {e}")
        raise typer.Exit(code=2)
    if cfg.io is None:
        print("[red]Config has no 'io' section; nothing to load.[/red]")
        raise typer.Exit(code=2)

    paths = RunPaths(out_dir=cfg.io.out_dir)
    if paths.manifest_json.exists() and not overwrite:
        print(f"[red]Outputs already exist under {paths.out_dir}[/red] (use --overwrite)")
        raise typer.Exit(code=2)

    print("[bold]Loading inputs...[/bold]")
    try:
        inputs = load_inputs(cfg.io)
    except (DrywellError, FileNotFoundError) as e:
        print(f"[red]Could not load inputs:[/red] {e}")
        raise typer.Exit(code=2)
    print(
        f"Wells: {len(inputs.wells)} | failures: {len(inputs.failures)} | "
        f"rasters: {inputs.rasters.n_layers} | units: "
        + ", ".join(f"{t.name}={len(t)}" for t in inputs.tessellations)
    )

    print("[bold]Calibrating...[/bold]")
    try:
        result = run_calibration(inputs, cfg, heartbeat_dir=cfg.io.out_dir / "heartbeat")
    except DrywellError as e:
        print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(code=1)

    t = result.manifest["reporting_bias_filter"]
    print(
        f"Calibration units: {len(result.targets)} "
        f"(ratio [{t['stage1']['ratio_lo']:.3f}, {t['stage1']['ratio_hi']:.3f}], "
        f"count >= {t['stage2']['count_lo']:.1f})"
    )
    print(f"Omega bounds: ({result.bounds.lo:.2f}, {result.bounds.hi:.2f})")
    print(result.comparison.to_string(index=False))

    write_run(result, cfg.io.out_dir, overwrite=overwrite)
    print("[green]Wrote[/green]", paths.manifest_json)

    if not result.all_converged and not allow_unconverged:
        bad = [name for name, r in result.results.items() if not r.success]
        print(f"[yellow]Did not converge:[/yellow] {', '.join(bad)}")
        raise typer.Exit(code=3)


if __name__ == "__main__":
    app()
