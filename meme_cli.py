#!/usr/bin/env python3
"""
Meme Studio command line interface

Renders memes locally and talks to the gallery either in-process (local
JSON/media stores) or over HTTP.

Examples:
    meme-studio render photo.jpg --top "one does not simply" --bottom "write a cli" -o meme.png
    meme-studio optimize big.jpg --format webp
    meme-studio validate upload.png
    meme-studio publish https://example.com/cat.jpg --top hello --gallery http://localhost:8000
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from config import settings, configure_logging
from meme_modules.compositor import Compositor, RenderOptions
from meme_modules.exporter import Exporter
from meme_modules.optimizer import ImageOptimizer, select_format
from meme_modules.publisher import MemePublisher
from meme_utils.exceptions import MemeStudioError
from meme_utils.image_utils import MIME_EXTENSIONS, parse_data_url


def _add_render_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("image", help="Image URL, data URL or file path")
    parser.add_argument("--top", default="", help="Top caption")
    parser.add_argument("--bottom", default="", help="Bottom caption")
    parser.add_argument("--width", type=int, default=settings.CANVAS_WIDTH, help="Canvas width")
    parser.add_argument("--height", type=int, default=settings.CANVAS_HEIGHT, help="Canvas height")
    parser.add_argument("--quality", type=float, default=settings.OUTPUT_QUALITY,
                        help="Quality factor 0-1 for lossy formats")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="meme-studio", description="Create and publish memes")
    parser.add_argument("--log-level", default=None, help="Console log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render a meme to a file")
    _add_render_arguments(render)
    render.add_argument("-o", "--output", default=None,
                        help="Output file (default: downloads dir, meme-<timestamp>.png)")
    render.add_argument("--mime-type", default=settings.OUTPUT_MIME_TYPE,
                        help="Output MIME type (image/png, image/jpeg, image/webp)")
    render.add_argument("--clipboard", action="store_true", help="Also copy the meme to the clipboard")

    optimize = subparsers.add_parser("optimize", help="Downscale and re-encode an image")
    optimize.add_argument("file", help="Image file")
    optimize.add_argument("-o", "--output", default=None, help="Output file")
    optimize.add_argument("--max-width", type=int, default=settings.OPTIMIZE_MAX_WIDTH)
    optimize.add_argument("--max-height", type=int, default=settings.OPTIMIZE_MAX_HEIGHT)
    optimize.add_argument("--quality", type=float, default=settings.OPTIMIZE_QUALITY)
    optimize.add_argument("--format", default=None, choices=["jpeg", "png", "webp"],
                          help="Output format (default: webp when supported, else jpeg)")

    thumbnail = subparsers.add_parser("thumbnail", help="Create a JPEG thumbnail")
    thumbnail.add_argument("file", help="Image file")
    thumbnail.add_argument("-o", "--output", default=None, help="Output file")
    thumbnail.add_argument("--size", type=int, default=settings.THUMBNAIL_SIZE,
                           help="Length of the longer side")

    validate = subparsers.add_parser("validate", help="Check image dimensions")
    validate.add_argument("file", help="Image file")
    validate.add_argument("--min-width", type=int, default=settings.MIN_IMAGE_WIDTH)
    validate.add_argument("--min-height", type=int, default=settings.MIN_IMAGE_HEIGHT)
    validate.add_argument("--max-width", type=int, default=settings.MAX_IMAGE_WIDTH)
    validate.add_argument("--max-height", type=int, default=settings.MAX_IMAGE_HEIGHT)

    publish = subparsers.add_parser("publish", help="Render a meme and save it to the gallery")
    _add_render_arguments(publish)
    publish.add_argument("--gallery", default=None,
                         help="Gallery base URL (default: local stores in the workspace)")

    serve = subparsers.add_parser("serve", help="Run the gallery API")
    serve.add_argument("--host", default=settings.API_HOST)
    serve.add_argument("--port", type=int, default=settings.API_PORT)
    serve.add_argument("--reload", action="store_true")

    return parser


def _render_options(args: argparse.Namespace) -> RenderOptions:
    return RenderOptions(width=args.width, height=args.height, quality=args.quality)


async def cmd_render(args: argparse.Namespace) -> int:
    compositor = Compositor()
    exporter = Exporter()

    raster = await compositor.render(args.image, args.top, args.bottom, _render_options(args))
    try:
        if args.output:
            output = Path(args.output)
            blob = raster.blob(args.mime_type, args.quality)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(blob.data)
        else:
            output = await exporter.download(raster, mime_type=args.mime_type, quality=args.quality)

        if args.clipboard:
            await exporter.copy_to_system_clipboard(raster)
    finally:
        raster.release()

    print(output)
    return 0


async def cmd_optimize(args: argparse.Namespace) -> int:
    optimizer = ImageOptimizer()
    fmt = args.format or select_format()

    result = await optimizer.optimize(
        Path(args.file),
        max_width=args.max_width,
        max_height=args.max_height,
        quality=args.quality,
        format=fmt,
    )

    extension = MIME_EXTENSIONS.get(result.blob.mime_type, "bin")
    output = Path(args.output) if args.output else Path(args.file).with_name(
        f"{Path(args.file).stem}-optimized.{extension}"
    )
    output.write_bytes(result.blob.data)

    print(
        f"{output}: {result.width}x{result.height}, "
        f"{result.original_size} -> {result.optimized_size} bytes ({result.compression_ratio:.1%})"
    )
    return 0


async def cmd_thumbnail(args: argparse.Namespace) -> int:
    optimizer = ImageOptimizer()
    data_url = await optimizer.create_thumbnail(Path(args.file), size=args.size)

    mime_type, data = parse_data_url(data_url)
    output = Path(args.output) if args.output else Path(args.file).with_name(
        f"{Path(args.file).stem}-thumb.{MIME_EXTENSIONS.get(mime_type, 'jpg')}"
    )
    output.write_bytes(data)

    print(output)
    return 0


async def cmd_validate(args: argparse.Namespace) -> int:
    optimizer = ImageOptimizer()
    check = await optimizer.validate_dimensions(
        Path(args.file),
        min_width=args.min_width,
        min_height=args.min_height,
        max_width=args.max_width,
        max_height=args.max_height,
    )

    if check.valid:
        print(f"OK: {check.width}x{check.height}")
        return 0

    print(f"{check.error}: {check.message}")
    return 1


async def cmd_publish(args: argparse.Namespace) -> int:
    compositor = Compositor()
    raster = await compositor.render(args.image, args.top, args.bottom, _render_options(args))

    try:
        if args.gallery:
            from meme_utils.gallery_client import GalleryClient

            async with GalleryClient(args.gallery) as gallery:
                publisher = MemePublisher(gallery.memes, gallery.storage)
                record = await publisher.save(raster, args.top, args.bottom)
        else:
            from meme_utils.blob_storage import LocalBlobStore
            from meme_utils.meme_store import JsonMemeRepository

            publisher = MemePublisher(JsonMemeRepository(), LocalBlobStore())
            record = await publisher.save(raster, args.top, args.bottom)
    finally:
        raster.release()

    print(f"{record.id} {record.image_url}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


COMMANDS = {
    "render": cmd_render,
    "optimize": cmd_optimize,
    "thumbnail": cmd_thumbnail,
    "validate": cmd_validate,
    "publish": cmd_publish,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        configure_logging(level=args.log_level)
        return cmd_serve(args)

    # Results go to stdout; keep the console quiet unless asked
    configure_logging(level=args.log_level or "WARNING")

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except (MemeStudioError, ValueError, OSError) as e:
        logger.debug(f"{args.command} failed: {e!r}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
