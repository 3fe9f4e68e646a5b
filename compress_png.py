#!/usr/bin/env python3
"""
compress_png.py
Shrink PNG images by clustering their colours into an indexed palette.

Usage:
  python compress_png.py INPUT [OUTPUT] --colors K --max-iters N --max-pixels N
                         --space [lab|rgb] --workers N --jobs N --seed S --no-palette --debug

Input:
  A Pillow-readable image, or a folder of them. Alpha is clustered with the colour channels.

Output:
  Indexed PNG. If OUTPUT is omitted the input file is overwritten. In folder
  mode OUTPUT is a directory and defaults to the input folder.

Notes:
  Clustering lives in smallpng.palette; file handling in smallpng.compress.
  CPU bound. ThreadPoolExecutor is used for k-means steps and for --jobs.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from PIL import UnidentifiedImageError

from smallpng.colour_space import ColorSpace
from smallpng.compress import compress_image
from smallpng.core_types import (
    DEFAULT_MAX_CLUSTER_PIXELS,
    DEFAULT_MAX_KMEANS_ITERS,
    DEFAULT_PALETTE_SIZE,
    PaletteConfig,
    default_workers,
)
from smallpng.image_io import MAX_PNG_PALETTE, is_image_file
from smallpng.utils import (
    capture_log_lines,
    debug_log,
    enable_line_buffered_stdout,
    error,
    format_byte_size,
    format_total_duration_compact,
    key_value_pairs_to_string,
    log,
    print_banner,
    print_config_line,
)

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif", ".tif", ".tiff"}


# CLI args


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments for palette compression.

    Returns:
      argparse.Namespace with:
        src: Path to image or folder
        dst: optional output Path (file or folder)
        colors: palette size
        max_iters: k-means iteration cap
        max_pixels: clustering sample cap
        space: "lab" | "rgb"
        workers: threads per k-means step
        jobs: files processed in parallel
        seed: optional RNG seed
        no_palette: re-encode only
        debug: bool for verbose clustering details
    """
    parser = argparse.ArgumentParser(
        prog="compress_png",
        description="Cluster image colours into a palette and write an indexed PNG.",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument(
        "dst",
        type=Path,
        nargs="?",
        default=None,
        help="Output image or folder (default: overwrite input)",
    )
    parser.add_argument(
        "--no-palette",
        action="store_true",
        help="Use the original colours, not a palette",
    )
    parser.add_argument(
        "--max-iters",
        type=int,
        default=DEFAULT_MAX_KMEANS_ITERS,
        help="Maximum clustering iterations after the first step (0 runs a single step)",
    )
    parser.add_argument(
        "--colors",
        type=int,
        default=DEFAULT_PALETTE_SIZE,
        help=f"Palette size (1..{MAX_PNG_PALETTE})",
    )
    parser.add_argument(
        "--max-pixels",
        type=int,
        default=DEFAULT_MAX_CLUSTER_PIXELS,
        help="Pixels randomly sampled for clustering",
    )
    parser.add_argument(
        "--space",
        choices=["lab", "rgb"],
        default="lab",
        help="Colour space for distances and averages",
    )
    parser.add_argument(
        "--workers", type=int, default=default_workers(), help="Threads per k-means step"
    )
    parser.add_argument("--jobs", type=int, default=1, help="Files processed in parallel")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--debug", action="store_true", help="Verbose clustering details")
    args = parser.parse_args(argv)

    if args.colors <= 0 or args.colors > MAX_PNG_PALETTE:
        parser.error(f"--colors must be in 1..{MAX_PNG_PALETTE}")
    if args.max_iters < 0:
        parser.error("--max-iters must be non-negative")
    if args.max_pixels <= 0:
        parser.error("--max-pixels must be positive")
    if args.workers < 1 or args.jobs < 1:
        parser.error("--workers and --jobs must be at least 1")
    return args


def _config_from_args(args: argparse.Namespace) -> PaletteConfig:
    return PaletteConfig(
        palette_size=args.colors,
        max_kmeans_iters=args.max_iters,
        max_cluster_pixels=args.max_pixels,
        color_space=ColorSpace.parse(args.space),
        workers=args.workers,
    )


# Per-file processing


def _process_single_image(
    src_path: Path,
    out_path: Path,
    config: PaletteConfig,
    no_palette: bool,
    rng: np.random.Generator,
    debug: bool,
) -> None:
    """Process a single image path end-to-end: load -> palettise -> save -> report."""
    t_start = time.perf_counter()
    print_banner(src_path.name)

    size_in = src_path.stat().st_size
    written = compress_image(
        src_path, out_path, config, no_palette=no_palette, rng=rng, debug=debug
    )
    size_out = written.stat().st_size

    log(
        f"Wrote {written.name} | palette={'off' if no_palette else config.palette_size} "
        f"| {format_byte_size(size_in)} -> {format_byte_size(size_out)}"
    )
    log(f"Total time {format_total_duration_compact(time.perf_counter() - t_start)}")


def _process_one_captured(
    src_path: Path,
    out_path: Path,
    config: PaletteConfig,
    no_palette: bool,
    rng: np.random.Generator,
    debug: bool,
) -> str:
    """
    Process a single file with its log lines captured.

    Useful for concurrent execution where output should be printed in order.
    """
    with capture_log_lines() as buf:
        _process_single_image(src_path, out_path, config, no_palette, rng, debug)
    return buf.getvalue()


def _collect_images(folder: Path) -> List[Path]:
    files = [
        p
        for p in folder.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTS and is_image_file(p)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


def _folder_targets(files: List[Path], outdir: Path) -> List[Tuple[Path, Path]]:
    """
    Pair each input with its output path.

    Outputs are always .png, so inputs differing only by extension would write
    the same file. A .png input keeps its name; the other inputs are skipped.
    """
    claimed: Dict[str, Tuple[Path, Path]] = {}
    for p in sorted(files, key=lambda f: f.suffix.lower() != ".png"):
        target = outdir / (p.stem + ".png")
        key = target.name.lower()
        if key in claimed:
            error(
                f"skipping {p.name}: {target.name} is already written "
                f"from {claimed[key][0].name}"
            )
            continue
        claimed[key] = (p, target)
    return [claimed[k] for k in sorted(claimed)]


# Entry point


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point.

    Handles single file or folder. In folder mode supports --jobs parallelism
    while preserving readable output ordering. Returns the process exit code.
    """
    enable_line_buffered_stdout()
    args = parse_cli_args(argv)
    config = _config_from_args(args)

    print_config_line(
        "run",
        [
            ("CPU cores", os.cpu_count() or 1),
            ("Workers", args.workers),
            ("Jobs", args.jobs),
        ],
        debug=False,
    )
    if args.debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Colours", args.colors),
                    ("Max iters", args.max_iters),
                    ("Max pixels", args.max_pixels),
                    ("Space", args.space),
                    ("Palette", not args.no_palette),
                    ("Seed", args.seed if args.seed is not None else "-"),
                ]
            )
        )

    src: Path = args.src
    if not src.exists():
        error(f"not found: {src}")
        return 2

    seeds = np.random.SeedSequence(args.seed)

    try:
        if src.is_dir():
            outdir = args.dst or src
            outdir.mkdir(parents=True, exist_ok=True)
            plan = _folder_targets(_collect_images(src), outdir)
            rngs = [np.random.default_rng(s) for s in seeds.spawn(len(plan))]
            if args.debug:
                debug_log(
                    key_value_pairs_to_string([("Images", len(plan)), ("Out", str(outdir))])
                )
            if args.jobs == 1:
                for (p, target), rng in zip(plan, rngs):
                    _process_single_image(
                        p, target, config, args.no_palette, rng, args.debug
                    )
            else:
                with ThreadPoolExecutor(max_workers=args.jobs) as ex:
                    futures = [
                        ex.submit(
                            _process_one_captured,
                            p,
                            target,
                            config,
                            args.no_palette,
                            rng,
                            args.debug,
                        )
                        for (p, target), rng in zip(plan, rngs)
                    ]
                    blocks = [f.result() for f in futures]
                print("".join(blocks), end="", flush=True)
        else:
            _process_single_image(
                src,
                args.dst or src,
                config,
                args.no_palette,
                np.random.default_rng(seeds),
                args.debug,
            )
    except (OSError, UnidentifiedImageError, ValueError) as e:
        error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
