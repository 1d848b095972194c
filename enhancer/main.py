"""
Photo Enhancer — command-line entry point

Usage:
  python -m enhancer.main photo.jpg
  python -m enhancer.main photo.jpg --aspect 4:5 --style Rustic --composition "Human Element"
  python -m enhancer.main photo.jpg --own-key AIza... --caption --output out.png
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.rule import Rule

from .config import get_config
from .credentials import mask_key
from .credits import InMemoryCreditLedger
from .imaging import extension_for, load_image_file
from .models import AspectRatio, GenerationOutcome
from .orchestrator import EnhancementSession
from .styles import StyleCategory, StyleSelection

load_dotenv()

console = Console()


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Photo Enhancer — AI product photo studio")
    parser.add_argument("photo", help="Path to the source photo")
    parser.add_argument(
        "--aspect",
        choices=[a.value for a in AspectRatio],
        default=AspectRatio.SQUARE.value,
        help="Output aspect ratio",
    )
    for category in StyleCategory:
        parser.add_argument(f"--{category.value}", default=None, help=f"{category.value.title()} choice")
    parser.add_argument(
        "--no-isolate",
        action="store_true",
        help="Restyle in place instead of isolating the subject onto a studio backdrop",
    )
    parser.add_argument("--own-key", default=None, help="Use your own Gemini API key (no credits charged)")
    parser.add_argument("--balance", type=float, default=100, help="Starting credit balance for the pooled path")
    parser.add_argument("--caption", action="store_true", help="Also write a social-media caption")
    parser.add_argument("--output", default=None, help="Where to write the result image")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s — %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _show_outcome(outcome: GenerationOutcome, output_path: Path, elapsed: float) -> None:
    if outcome.ok:
        console.print(
            Panel(
                f"[bold]{outcome.title}[/bold]\n"
                f"Saved to: [bold]{output_path}[/bold]\n"
                f"Path: {outcome.credential_mode.value}  |  attempts: {outcome.attempts}  |  {elapsed:.1f}s",
                title="[bold green]Image ready[/bold green]",
                border_style="green",
            )
        )
    elif outcome.cancelled:
        console.print("[dim]Generation cancelled.[/dim]")
    else:
        hint = "\n[yellow]→ Update your API key in Settings.[/yellow]" if outcome.error.needs_key_update else ""
        console.print(
            Panel(
                f"{outcome.message}{hint}",
                title=f"[bold red]{outcome.error_kind.value}[/bold red]",
                border_style="red",
            )
        )


async def run(args: argparse.Namespace) -> int:
    config = get_config()
    use_own_key = bool(args.own_key)
    if not use_own_key and not config.pooled_api_key:
        console.print("[bold red]Error:[/bold red] GEMINI_API_KEY not set.")
        console.print("Create a .env file from .env.example, or pass --own-key.")
        return 1

    ledger = InMemoryCreditLedger(balance=args.balance)
    session = EnhancementSession(config, ledger)
    session.upload(load_image_file(args.photo))

    console.print(Rule("[bold magenta]Photo Enhancer[/bold magenta]"))
    console.print(
        f"  Photo: [bold]{args.photo}[/bold]  |  Aspect: [bold]{args.aspect}[/bold]  |  "
        f"Key: [bold]{mask_key(args.own_key) if use_own_key else 'pooled'}[/bold]"
    )

    selection = StyleSelection.from_mapping({c.value: getattr(args, c.value) for c in StyleCategory})
    if not selection.is_empty():
        # Human Element needs the detected subject
        detection = await session.open_advanced(use_own_key, args.own_key)
        if detection is not None:
            console.print(
                f"  Detected: [bold]{session.category_display_name()}[/bold]"
                + (f" — {detection.subject}" if detection.subject else "")
            )
        session.styles.apply(selection)

    t0 = time.time()
    outcome = await session.generate(
        aspect_ratio=AspectRatio(args.aspect),
        isolate_subject=not args.no_isolate,
        use_own_key=use_own_key,
        stored_key=args.own_key,
    )

    output_path = Path(args.output) if args.output else Path(args.photo).with_name(
        f"{Path(args.photo).stem}_enhanced{extension_for(outcome.image.mime_type if outcome.image else '')}"
    )
    if outcome.ok:
        output_path.write_bytes(outcome.image.data)
    _show_outcome(outcome, output_path, time.time() - t0)
    if not outcome.ok:
        return 2

    if not use_own_key:
        console.print(f"  [dim]Credits left: {ledger.balance:g}[/dim]")

    if args.caption:
        caption = await session.write_caption(use_own_key, args.own_key)
        if caption.ok:
            console.print(Panel(caption.caption, title="[bold]Caption[/bold]", border_style="cyan"))
        elif caption.error is not None:
            console.print(f"  [yellow]⚠ Caption failed: {caption.error.message}[/yellow]")
    return 0


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    _setup_logging(args.verbose)
    if not Path(args.photo).is_file():
        console.print(f"[bold red]Error:[/bold red] {args.photo} not found.")
        sys.exit(1)
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
