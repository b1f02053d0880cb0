#!/usr/bin/env python3
"""
Abbas Image Studio - Main Entry Point

Runs the HTTP API, or drives a single generation from the command line.

Usage:
    python main.py serve --reload
    python main.py generate --prompt "A lighthouse at dawn"
    python main.py generate --prompt "Infographic of the water cycle" --output-dir out
    python main.py generate --prompt "Make it snowy" --image photo.jpg
"""

import argparse
import asyncio
import mimetypes
import os
import sys
from pathlib import Path

from src.core.config import StudioConfig
from src.core.image_generator import create_image_generator
from src.services.history_store import MemoryHistoryStore
from src.services.notifications import Category
from src.services.studio_shell import StudioShell


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description="Generate images and infographics from text prompts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --port 8000
  %(prog)s generate --prompt "A red fox in the snow"
  %(prog)s generate --prompt "إنفوجرافيك عن دورة الماء" --language ar
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # API server
    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=os.getenv("HOST", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    # One-off generation
    generate = subparsers.add_parser("generate", help="Generate a single image")
    generate.add_argument(
        "--prompt", "-p",
        type=str,
        required=True,
        help="What to draw (mention 'infographic' for educational styling)"
    )
    generate.add_argument(
        "--image", "-i",
        type=str,
        help="Reference image to send along with the prompt"
    )
    generate.add_argument(
        "--output-dir", "-o",
        type=str,
        default="./output",
        help="Where to save the PNG (default: ./output)"
    )
    generate.add_argument(
        "--language", "-l",
        type=str,
        default=None,
        help="Message language: en or ar (default: STUDIO_LANGUAGE or en)"
    )
    generate.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print every notification"
    )
    return parser


def run_server(args) -> int:
    import uvicorn

    uvicorn.run("src.api.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


async def run_generate(args) -> int:
    config = StudioConfig()
    if not config.generation.validate():
        print(f"Error: generation backend '{config.generation.backend}' is not configured.", file=sys.stderr)
        print("Set GENERATION_URL (edge) or OPENROUTER_API_KEY (openrouter) in .env", file=sys.stderr)
        return 1

    shell = StudioShell(
        generator=create_image_generator(config.generation),
        store=MemoryHistoryStore(),
        config=config,
        language=args.language,
    )
    await shell.mount()

    try:
        shell.on_prompt_change(args.prompt)

        if args.image:
            path = Path(args.image)
            if not path.exists():
                print(f"Error: image not found: {path}", file=sys.stderr)
                return 1
            content_type, _ = mimetypes.guess_type(path.name)
            if not shell.on_upload(content_type, path.read_bytes(), path.name):
                print(f"Error: {shell.notifier.drain()[-1].message}", file=sys.stderr)
                return 1

        if args.verbose:
            print("Generating image...")
        result = await shell.on_submit()
        await shell.settle()

        for notification in shell.notifier.drain():
            if args.verbose or notification.category is Category.ERROR:
                print(f"[{notification.event.value}] {notification.message}")

        if result.error is not None:
            detail = shell.session.error_detail
            print(f"Error: {result.error.value}{': ' + detail if detail else ''}", file=sys.stderr)
            return 1

        image = await shell.on_download()
        if image is None:
            print("Error: generated image could not be downloaded", file=sys.stderr)
            return 1

        os.makedirs(args.output_dir, exist_ok=True)
        output_path = Path(args.output_dir) / image.filename
        output_path.write_bytes(image.content)
        print(f"✓ Image saved: {output_path}")
        return 0
    finally:
        await shell.close()


def main():
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args()

    if args.command == "serve":
        return run_server(args)
    return asyncio.run(run_generate(args))


if __name__ == "__main__":
    sys.exit(main())
