from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sys

from layerplot.data.loader import PENGUINS_URL
from layerplot.errors import LayerplotError
from layerplot.export import FORMATS
from layerplot.palettes import get_palette, palette_names
from layerplot.walkthrough import run_walkthrough


LOGGER = logging.getLogger("layerplot")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="layerplot")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LAYERPLOT_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run-walkthrough", help="Render every step of the penguin tutorial.")
    run.add_argument("--data", default=PENGUINS_URL, help="CSV path or http(s) URL.")
    run.add_argument("--out-dir", type=Path, required=True)
    run.add_argument("--format", choices=list(FORMATS), default="pdf")
    run.add_argument("--width", type=float, default=7.0)
    run.add_argument("--height", type=float, default=5.0)
    run.add_argument("--units", choices=["in", "cm", "mm", "pt", "px"], default="in")
    run.add_argument("--dpi", type=float, default=300.0)
    run.add_argument("--cache-dir", type=Path, default=None)
    run.add_argument("--base-family", default="sans")
    run.add_argument("--base-size", type=float, default=11.0)

    sub.add_parser("list-palettes", help="Print the known palette names.")
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "run-walkthrough":
        try:
            written = run_walkthrough(
                args.data,
                args.out_dir,
                fmt=args.format,
                width=args.width,
                height=args.height,
                units=args.units,
                dpi=args.dpi,
                cache_dir=args.cache_dir,
                base_family=args.base_family,
                base_size=args.base_size,
            )
        except LayerplotError as exc:
            LOGGER.error("%s: %s", type(exc).__name__, exc)
            raise SystemExit(1) from exc
        for path in written:
            print(path)
        return

    if args.command == "list-palettes":
        for name in palette_names():
            print(f"{name}\t{get_palette(name).kind}")
        return

    raise RuntimeError(f"unsupported command: {args.command}")


if __name__ == "__main__":
    main(sys.argv[1:])
