#!/usr/bin/env python3
"""
CLI module for Braille Pie - Command-Line Interface

Converts an image file, URL or stdin stream into Unicode Braille text.
The rendered text goes to stdout; logging uses Rich on stderr.
"""

import sys
import os
import logging
import argparse
import time
from typing import Optional, Dict, Any

# Rich imports for terminal output
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# Local imports
from braille_lib import BrailleGrid, __version__
from dithering_lib import DitherMode, MODE_ALIASES, get_dither_strategy
from utils import (
    InputSource,
    ImageLoadError,
    classify_input,
    load_source_image,
    compute_target_dimensions,
    prepare_image,
)
from config_manager import ConfigManager, ConfigError


# Rich console on stderr; stdout is reserved for the Braille output
console = Console(stderr=True)

logger = logging.getLogger('braille_pie')

LOG_ENV_VAR = "BRAILLE_LOG"


def setup_logging(verbosity: int = 0, quiet: bool = False, log_file: Optional[str] = None):
    """
    Setup logging with Rich handler on stderr.

    Args:
        verbosity: 0 for errors only, 1 for INFO, 2+ for DEBUG
        quiet: Suppress all but ERROR messages
        log_file: Optional path to log file

    The BRAILLE_LOG environment variable, when set to a level name,
    takes precedence over both flags.
    """
    # Determine logging level
    if quiet or verbosity <= 0:
        level = logging.ERROR
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    env_level = os.environ.get(LOG_ENV_VAR)
    if env_level:
        resolved = logging.getLevelName(env_level.strip().upper())
        if isinstance(resolved, int):
            level = resolved

    handlers = []

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True
    )
    handlers.append(rich_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True
    )

    logger.setLevel(level)
    return logger


# ==================== Argument Types ====================

def positive_int(value: str) -> int:
    """argparse type for sizes: a positive integer."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("must be a positive integer")
    if number < 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    if number == 0:
        raise argparse.ArgumentTypeError("this argument cannot be 0")
    return number


def frame_number(value: str) -> int:
    """argparse type for frame numbers, starting at 0."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("must be a non-negative integer")
    if number < 0:
        raise argparse.ArgumentTypeError("must be a non-negative integer")
    return number


def dither_mode(value: str) -> DitherMode:
    """argparse type resolving a dithering name or alias."""
    try:
        return DitherMode.from_name(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid dithering '{value}', choose from: {', '.join(VALID_DITHER_NAMES)}"
        )


VALID_DITHER_NAMES = ["sierra2", "s2", "bayer4x4", "b4", "bayer2x2", "b2", "none", "n"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="braille-pie",
        description="Braille Pie - render images as Unicode Braille text"
    )

    parser.add_argument('input', nargs='?', type=classify_input,
                        help='Path to a local image file, an http(s) URL to one, or "-" to read from stdin')
    parser.add_argument('--width', '-w', type=positive_int,
                        help='Width in dots of the output image (default 64, keeps aspect ratio if only height is set)')
    parser.add_argument('--height', '-H', type=positive_int,
                        help='Height in dots of the output image (keeps aspect ratio if not set)')
    parser.add_argument('--frame', '-f', type=frame_number,
                        help='Frame of an animated image to use, starting at 0')
    parser.add_argument('--dithering', '-d', type=dither_mode, metavar='{' + ','.join(VALID_DITHER_NAMES) + '}',
                        help='Dithering algorithm (default: sierra2)')
    parser.add_argument('--allow-blank-chars', '-b', action='store_true', default=None,
                        help='Allow blank Braille characters instead of a single dot '
                             '(can make rows look skewed in some terminals)')
    parser.add_argument('--invert', '-i', action='store_true', default=None,
                        help='Invert dots, making dark values in the source image raised dots')
    parser.add_argument('--contrast', type=float,
                        help='Adjust contrast; positive increases it, negative decreases it (default 0.0)')
    parser.add_argument('--brighten', type=int,
                        help='Adjust brightness; positive brightens, negative darkens (default 0)')
    parser.add_argument('--verbose', '-v', action='count', default=0,
                        help='-v for INFO logging, -vv for DEBUG logging')
    parser.add_argument('--quiet', '-q', action='store_true', help='Quiet mode (errors only)')
    parser.add_argument('--log-file', type=str, help='Log to file')
    parser.add_argument('--config', type=str, help='Path to JSON config file with default options')
    parser.add_argument('--save-config', action='store_true',
                        help='Save the effective options as the new defaults')
    parser.add_argument('--list-modes', action='store_true', help='List dithering algorithms and exit')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


# ==================== Option Resolution ====================

OPTION_KEYS = ("width", "height", "frame", "dithering", "allow_blank_chars",
               "invert", "contrast", "brighten")


def resolve_options(args: argparse.Namespace, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge command-line flags over config defaults.

    Args:
        args: Parsed arguments (unset flags are None)
        defaults: The "defaults" section of the config

    Returns:
        Dictionary of effective options
    """
    options = {}
    for key in OPTION_KEYS:
        value = getattr(args, key)
        options[key] = value if value is not None else defaults.get(key)

    if isinstance(options["dithering"], DitherMode):
        options["dithering"] = options["dithering"].value
    try:
        options["dithering"] = DitherMode.from_name(str(options["dithering"] or "sierra2")).value
    except ValueError:
        raise ConfigError(f"Invalid dithering in config: '{options['dithering']}'")

    for key in ("width", "height"):
        value = options[key]
        if value is not None and (not isinstance(value, int) or value <= 0):
            raise ConfigError(f"'{key}' must be a positive integer")

    for key, convert, fallback in (("frame", int, 0), ("contrast", float, 0.0), ("brighten", int, 0)):
        try:
            options[key] = convert(options[key] or fallback)
        except (TypeError, ValueError):
            raise ConfigError(f"'{key}' must be a number")
    if options["frame"] < 0:
        raise ConfigError("'frame' must not be negative")

    options["allow_blank_chars"] = bool(options["allow_blank_chars"])
    options["invert"] = bool(options["invert"])
    return options


# ==================== Image Processing ====================

def render_image(source: InputSource, options: Dict[str, Any]) -> str:
    """
    Load, size, dither and render one image.

    Args:
        source: Classified input
        options: Effective options from resolve_options

    Returns:
        The Braille text
    """
    image = load_source_image(source, options["frame"])
    logger.debug(f"source image dimensions: {image.width}x{image.height}")

    start = time.perf_counter()
    width, height = compute_target_dimensions(
        image.width, image.height, options["width"], options["height"]
    )
    logger.debug(f"target dimensions: {width}x{height}")

    image = prepare_image(image, width, height,
                          contrast=options["contrast"],
                          brightness=options["brighten"])

    mode = DitherMode(options["dithering"])
    ditherer = get_dither_strategy(mode)
    logger.info(f"Applying dithering: [cyan]{mode.value}[/]")

    # light pixels are raised by default, which suits dark terminals
    grid = BrailleGrid.from_image(image, ditherer, invert=not options["invert"])
    text = grid.render(no_empty_chars=not options["allow_blank_chars"], row_separator="\n")

    logger.debug(f"turned image into braille in {time.perf_counter() - start:.4f}s")
    return text


def list_modes():
    """Print the available dithering modes and their aliases."""
    aliases = {value: alias for alias, value in MODE_ALIASES.items()}
    console.print("[bold]Dithering Algorithms:[/]")
    for mode in DitherMode:
        console.print(f"  • [cyan]{mode.value}[/] [dim]({aliases[mode.value]})[/]")


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_modes:
        list_modes()
        sys.exit(0)

    if args.input is None:
        parser.error("the following arguments are required: input")

    # Config is read before logging so it can name the log file
    try:
        config = ConfigManager(args.config)
    except ConfigError as e:
        setup_logging(args.verbose, args.quiet, args.log_file)
        logger.error(f"[bold red]{escape(str(e))}[/]")
        sys.exit(1)

    setup_logging(args.verbose, args.quiet, args.log_file or config.get("log", "file"))
    logger.debug(f"parsed arguments: {escape(repr(vars(args)))}")

    try:
        options = resolve_options(args, config.get_defaults())
    except ConfigError as e:
        logger.error(f"[bold red]{escape(str(e))}[/]")
        sys.exit(1)

    if args.save_config:
        config.update_defaults(options)
        try:
            config.save()
        except ConfigError as e:
            logger.error(escape(str(e)))
            sys.exit(1)

    logger.info(f"Input: [cyan]{escape(args.input.value)}[/] ({args.input.kind})")

    try:
        text = render_image(args.input, options)
    except (ImageLoadError, OSError) as e:
        logger.error(f"Failed to load image: {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Failed to convert image: {escape(str(e))}", exc_info=True)
        sys.exit(1)

    print(text)
    sys.exit(0)


if __name__ == "__main__":
    main()
