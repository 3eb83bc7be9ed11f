"""Command-line entry point: transform Markdown files in place or into a directory."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
import sys
import time
from typing import TYPE_CHECKING, Any

from imgit.config import resolve_config
from imgit.errors import ImgitError
from imgit.pipeline import Pipeline
from imgit.plugins.youtube import youtube

if TYPE_CHECKING:
    from collections.abc import Sequence

    from imgit.config import Config

logger = logging.getLogger("imgit.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="imgit",
        description="Replace media references in Markdown with optimized HTML.",
    )
    parser.add_argument("files", nargs="+", type=Path, help="Markdown files to transform")
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Directory for the transformed files (default: overwrite in place)",
    )
    parser.add_argument(
        "--width", type=int, default=None, help="Width limit for rendered assets, in pixels"
    )
    parser.add_argument(
        "--no-youtube",
        action="store_true",
        help="Do not recognize YouTube links (they are treated as plain assets)",
    )
    parser.add_argument(
        "--no-encode",
        action="store_true",
        help="Skip ffmpeg encoding and poster extraction; reference the source files only",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Resolve configuration with the command-line flags as top-precedence overrides."""
    overrides: dict[str, Any] = {}
    if args.width is not None:
        overrides["width"] = args.width
    if args.no_youtube:
        overrides["youtube"] = False
    if args.no_encode:
        overrides["encode"] = {"image": None, "animation": None, "video": None}
        overrides["poster"] = None
    config = resolve_config(overrides)
    if config.youtube and not any(p.name == "youtube" for p in config.plugins):
        config = config.model_copy(update={"plugins": (*config.plugins, youtube())})
    return config


def output_paths(files: Sequence[Path], out: Path | None) -> list[Path]:
    """Where each transformed file is written.

    Without *out* files are overwritten in place. With it, each file keeps
    its path relative to the deepest directory shared by all inputs, so
    ``docs/a/index.md`` and ``docs/b/index.md`` land in ``out/a`` and ``out/b``.
    """
    if out is None:
        return list(files)
    resolved = [f.resolve() for f in files]
    root = Path(os.path.commonpath([f.parent for f in resolved]))
    return [out / f.relative_to(root) for f in resolved]


async def run(files: Sequence[Path], out: Path | None, config: Config) -> int:
    """Transform *files* in one pipeline run; returns the number written."""
    targets = output_paths(files, out)
    written = 0
    async with Pipeline(config) as pipeline:
        for file, target in zip(files, targets, strict=True):
            content = file.read_text(encoding="utf-8")
            result = await pipeline.transform(str(file), content)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(result, encoding="utf-8")
            logger.debug("Wrote %s", target)
            written += 1
    return written


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    start = time.perf_counter()
    try:
        config = build_config(args)
        written = asyncio.run(run(args.files, args.out, config))
    except ImgitError as e:
        print(f"imgit: {e}", file=sys.stderr)
        if e.hint:
            print(f"hint: {e.hint}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"imgit: {e}", file=sys.stderr)
        return 1

    logger.info("Transformed %d file(s) in %.2fs", written, time.perf_counter() - start)
    return 0


if __name__ == "__main__":
    sys.exit(main())
