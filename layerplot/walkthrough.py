"""The penguin bill-dimension tutorial as a sequence of configured renders.

Each step builds on the previous one: a plain scatter plot of bill depth
against bill length colored by body mass, then explicit axis breaks and a
sequential palette, plain labels, markdown labels, HTML-styled labels, a
restyled title and finally species colors.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path

from layerplot.data.filters import not_null
from layerplot.data.loader import PENGUINS_SCHEMA, ValueRemap, load_table
from layerplot.data.table import Table
from layerplot.display import DEFAULT_DPI, Units
from layerplot.export import export
from layerplot.plot import PlotSpec, plot
from layerplot.theme import set_default_theme, theme_minimal


LOGGER = logging.getLogger(__name__)

SPECIES_COLORS = {
    "Adélie": "#FF8C00",
    "Chinstrap": "#A034F0",
    "Gentoo": "#159090",
}
REQUIRED_COLUMNS = ("bill_length_mm", "bill_depth_mm", "body_mass_g")
DATA_CREDIT = "Gorman, Williams &amp; Fraser (2014) <i>PLoS ONE</i>"


@dataclass(frozen=True)
class WalkthroughStep:
    name: str
    spec: PlotSpec


def build_steps(table: Table) -> list[WalkthroughStep]:
    steps: list[WalkthroughStep] = []

    base = (
        plot(table, x="bill_length_mm", y="bill_depth_mm", color="body_mass_g")
        .geom_point(size=2.2, alpha=0.6)
    )
    steps.append(WalkthroughStep("01_base", base))

    scaled = (
        base.scale_x_continuous(breaks=range(35, 61, 5), limits=(30, 60))
        .scale_color_palette("BurgYl", direction="forward")
    )
    steps.append(WalkthroughStep("02_scales", scaled))

    labelled = scaled.set_labels(
        x="Bill length (mm)",
        y="Bill depth (mm)",
        color="Body mass (g)",
        title="Bill dimensions of brush-tailed penguins",
        subtitle="A scatter plot of bill depth versus bill length.",
        caption="Data: Gorman, Williams & Fraser (2014) PLoS ONE",
    )
    steps.append(WalkthroughStep("03_labels", labelled))

    markdown = labelled.set_labels(
        x="**Bill length** (mm)",
        y="**Bill depth** (mm)",
        color="**Body mass** (g)",
        title="Bill dimensions of brush-tailed penguins *Pygoscelis*",
        caption=f"**Data:** {DATA_CREDIT}",
    )
    steps.append(WalkthroughStep("04_markdown", markdown))

    species = ", ".join(
        f'<i style="color:{color};">{name}</i>' for name, color in SPECIES_COLORS.items()
    )
    html = markdown.set_labels(
        subtitle=f"A scatter plot of bill depth versus bill length.<br>Species: {species}",
        caption=f'<b style="font-size:8pt;font-family:serif;">Data:</b> {DATA_CREDIT}',
    )
    steps.append(WalkthroughStep("05_html", html))

    themed = html.set_theme(
        title={"bold": True, "size_pt": 18},
        title_position="plot",
        show_minor_grid=False,
    )
    steps.append(WalkthroughStep("06_theme", themed))

    by_species = (
        themed.set_aesthetics(color="species")
        .scale_color_manual(SPECIES_COLORS)
        .set_labels(color="**Species**")
    )
    steps.append(WalkthroughStep("07_species", by_species))
    return steps


def load_penguins(source: str | os.PathLike[str], *, cache_dir: str | os.PathLike[str] | None = None) -> Table:
    return load_table(
        source,
        schema=PENGUINS_SCHEMA,
        remaps=(ValueRemap("species", {"Adelie": "Adélie"}),),
        predicates=(not_null(*REQUIRED_COLUMNS),),
        cache_dir=cache_dir,
    )


def run_walkthrough(
    source: str | os.PathLike[str],
    out_dir: str | os.PathLike[str],
    *,
    fmt: str = "pdf",
    width: float = 7.0,
    height: float = 5.0,
    units: Units = "in",
    dpi: float = DEFAULT_DPI,
    cache_dir: str | os.PathLike[str] | None = None,
    base_family: str = "sans",
    base_size: float = 11.0,
) -> list[Path]:
    """Load the dataset, render every step and return the written files in order."""
    table = load_penguins(source, cache_dir=cache_dir)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    previous = set_default_theme(theme_minimal(base_size=base_size, base_family=base_family))
    written: list[Path] = []
    try:
        for step in build_steps(table):
            path = out / f"{step.name}.{fmt}"
            written.append(
                export(step.spec, path, width=width, height=height, units=units, dpi=dpi, format=fmt)
            )
    finally:
        set_default_theme(previous)
    LOGGER.info("walkthrough wrote %d file(s) to %s", len(written), out)
    return written
