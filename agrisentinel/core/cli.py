"""
AgriSentinel CLI entrypoint: inspect and render NDVI classes of a GeoTIFF.
"""

import sys
from pathlib import Path

import click  # type: ignore
from click import echo

from agrisentinel.core.config import ConfigManager
from agrisentinel.core.exceptions import AgriSentinelError
from agrisentinel.core.logger import Logger
from agrisentinel.ndvi.classes import class_fractions
from agrisentinel.ndvi.raster import (
    encode_png,
    ndvi_array,
    read_geotiff,
    select_band_indices,
)
from agrisentinel.ndvi.shader import NdviPixelShader, render_overlay

logger = Logger.get_logger(__name__)


@click.group()
def cli():
    """AgriSentinel: NDVI tooling for parcel monitoring."""
    Logger.setup()


@cli.command()
@click.argument("tif", type=click.Path(exists=True, dir_okay=False))
def classify(tif):
    """Print the share of TIF pixels in each NDVI class."""
    try:
        raster = read_geotiff(tif)
        red, nir = select_band_indices(raster.band_count)
        fractions = class_fractions(ndvi_array(raster))
    except AgriSentinelError as e:
        echo(f"❌  Classification failed: {e}", err=True)
        sys.exit(1)
    echo(f"Bands: {raster.band_count} (red={red}, nir={nir})")
    for name, share in fractions.items():
        echo(f"{name:<16} {share * 100:6.2f} %")


@cli.command()
@click.argument("tif", type=click.Path(exists=True, dir_okay=False))
@click.argument("output", type=click.Path(dir_okay=False))
@click.option(
    "--resolution",
    type=int,
    default=None,
    help="Rendered pixels along the longer side (defaults to config).",
)
def render(tif, output, resolution):
    """Write the colourised NDVI overlay of TIF to OUTPUT (PNG)."""
    res = resolution or int(
        ConfigManager.default().get_section("raster").get("resolution", 64)
    )
    try:
        raster = read_geotiff(tif)
        red, nir = select_band_indices(raster.band_count)
        rgba = render_overlay(raster.values, NdviPixelShader(red, nir), res)
    except (AgriSentinelError, ValueError) as e:
        echo(f"❌  Rendering failed: {e}", err=True)
        sys.exit(1)
    Path(output).write_bytes(encode_png(rgba))
    logger.info("Rendered %s at resolution %d", tif, res)
    echo(f"✅  Overlay written to `{output}`")


if __name__ == "__main__":  # pragma: no cover
    cli()
