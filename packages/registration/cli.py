"""CLI entry-point for multi-room registration."""

from __future__ import annotations

import logging

import click

from packages.core.config import RegistrationConfig
from packages.registration.loader import load_ply_cloud
from packages.registration.process import align_rooms_to_json, register_clouds


def _build_config(config_file: str | None, **overrides) -> RegistrationConfig:
    base = RegistrationConfig.from_file(config_file) if config_file else RegistrationConfig()
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return base
    return RegistrationConfig.model_validate({**base.model_dump(), **changes})


@click.group()
def main():
    """Stitch independently scanned rooms into one building model."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s | %(name)s | %(message)s",
    )


@main.command()
@click.argument("rooms_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", "output_file", default=None, help="Output JSON path.")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Registration config JSON.")
@click.option("--spacing", type=float, default=None, help="Surface sampling spacing (metres).")
@click.option("--max-iterations", type=int, default=None, help="ICP iteration budget per pair.")
@click.option("--estimation", type=click.Choice(["point_to_point", "point_to_plane"]), default=None,
              help="Transform estimation method.")
def align(
    rooms_file: str,
    output_file: str | None,
    config_file: str | None,
    spacing: float | None,
    max_iterations: int | None,
    estimation: str | None,
):
    """Align the rooms in ROOMS_FILE and produce a building model JSON."""
    config = _build_config(
        config_file,
        sample_spacing=spacing,
        max_iterations=max_iterations,
        estimation=estimation,
    )
    json_str = align_rooms_to_json(rooms_file, output_path=output_file, config=config)
    click.echo(json_str)


@main.command()
@click.argument("source_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("target_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Registration config JSON.")
@click.option("--max-distance", type=float, default=None, help="Max correspondence distance (metres).")
@click.option("--estimation", type=click.Choice(["point_to_point", "point_to_plane"]), default=None,
              help="Transform estimation method.")
def register(
    source_file: str,
    target_file: str,
    config_file: str | None,
    max_distance: float | None,
    estimation: str | None,
):
    """Register SOURCE_FILE onto TARGET_FILE (PLY point clouds)."""
    config = _build_config(config_file, max_correspondence_distance=max_distance, estimation=estimation)
    source = load_ply_cloud(source_file, room_index=1)
    target = load_ply_cloud(target_file, room_index=0)
    result = register_clouds(source, target, config)
    click.echo(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
