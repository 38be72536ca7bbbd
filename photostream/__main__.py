#!/usr/bin/env python3
"""photostream - metadata generation for a static photo site.

This is the main CLI entry point for photostream. It walks a directory of
photos and writes one Markdown record per image with a title, description,
alt text, tags, camera details and a privacy-aware location.

Usage:
    python -m photostream
    python -m photostream path/to/IMG_0001.jpg
    python -m photostream --force
    python -m photostream --update-exif
    python -m photostream --update-locations
    python -m photostream --init-config
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from photostream._version import __version__
from photostream.config import ConfigManager
from photostream.config.manager import ConfigError
from photostream.processing import BatchStats, FatalPipelineError, MetadataGenerator

DEFAULT_CONFIG_FILE = "photostream.yaml"

RULE = "=" * 70


def setup_logging(verbose: bool = False) -> logging.Handler:
    """Send log records to the console.

    Args:
        verbose: Show DEBUG records as well as INFO and above

    Returns:
        The console handler
    """
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s - %(name)s - %(message)s"))

    logging.getLogger().setLevel(level)
    logging.getLogger().addHandler(handler)
    return handler


def set_console_level(handler: logging.Handler, level_name: str) -> None:
    """Apply the configured logging.level to the console handler."""
    level = logging.getLevelName(str(level_name).upper())
    handler.setLevel(level)
    root_logger = logging.getLogger()
    if level < root_logger.level:
        root_logger.setLevel(level)


def add_file_logging(config: ConfigManager) -> None:
    """Mirror every record, DEBUG included, into the configured log file."""
    log_file = config.get("logging.file")
    if not log_file:
        return

    log_path = Path(log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning(f"Cannot open log file {log_path}: {e}")
        return

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(config.get("logging.format")))
    logging.getLogger().setLevel(logging.DEBUG)
    logging.getLogger().addHandler(handler)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="photostream",
        description="photostream - metadata generation for a static photo site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate records for every new photo
  python -m photostream

  # Generate the record for one photo
  python -m photostream src/assets/photos/IMG_0001.jpg

  # Regenerate all records without asking
  python -m photostream --force

  # Refresh camera, lens and settings in existing records
  python -m photostream --update-exif

  # Refresh location names in existing records
  python -m photostream --update-locations

  # Write a starter configuration file
  python -m photostream --init-config

Environment:
  ANTHROPIC_API_KEY, OPENCAGE_API_KEY, PHOTOS_DIRECTORY, CONTENT_DIRECTORY
"""
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"photostream {__version__}"
    )

    parser.add_argument(
        "file",
        nargs="?",
        metavar="FILE",
        help="Process a single image instead of the whole assets directory"
    )

    # Processing mode (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--update-exif",
        action="store_true",
        help="Update camera, lens and settings in existing records"
    )
    mode_group.add_argument(
        "--update-locations",
        action="store_true",
        help="Update location names in existing records"
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Regenerate existing records and skip the confirmation prompt"
    )

    # Configuration
    parser.add_argument(
        "--config",
        metavar="PATH",
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_FILE} or ~/.photostream/config.yaml)"
    )
    parser.add_argument(
        "--assets",
        metavar="DIR",
        help="Directory containing source photos"
    )
    parser.add_argument(
        "--content",
        metavar="DIR",
        help="Directory where records are written"
    )
    parser.add_argument(
        "--init-config",
        nargs="?",
        const=DEFAULT_CONFIG_FILE,
        metavar="PATH",
        help=f"Write a starter config file (default: {DEFAULT_CONFIG_FILE}) and exit"
    )

    # Output control
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose debug logging"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress all output except errors"
    )

    return parser.parse_args(argv)


def confirm_batch(count: int) -> bool:
    """Ask the user to confirm a batch run.

    Args:
        count: Number of images that would be processed

    Returns:
        True if the user answered yes
    """
    try:
        answer = input(f"\nProcess {count} images? (y/N): ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def print_banner() -> None:
    print()
    print(RULE)
    print(f"  photostream {__version__}: metadata for a static photo site")
    print(RULE)
    print()


def print_summary(stats: BatchStats, mode: str) -> None:
    """Print counts for a finished run followed by any per-file errors.

    Args:
        stats: Totals collected during the run
        mode: Run mode shown in the heading (e.g. "Generation")
    """
    rows = [("Images", stats.total), ("Written", stats.processed)]
    if stats.skipped:
        rows.append(("Skipped", stats.skipped))
    if stats.failed:
        rows.append(("Failed", stats.failed))
    rows.append(("Elapsed", f"{stats.total_time:.1f}s"))
    if stats.total:
        rows.append(("Per image", f"{stats.total_time / stats.total:.1f}s"))

    print()
    print(RULE)
    print(f"{mode} Summary")
    print(RULE)
    for label, value in rows:
        print(f"  {label + ':':<12}{value}")
    print()

    failures = [r for r in stats.results if r.error]
    if failures:
        print(f"✗ {len(failures)} image(s) failed (see the log for tracebacks):")
        for result in failures:
            print(f"    {result.filename}: {result.error}")
    elif not stats.total:
        print("No images found.")
    elif not stats.processed and stats.skipped:
        print("Every image already has a record. Use --force to regenerate.")
    else:
        print(f"✓ {mode} finished")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the photostream CLI.

    Returns:
        Exit code (0 for success, 1 for fatal errors, 2 for configuration
        errors, 130 when interrupted)
    """
    args = parse_arguments(argv)

    console = None
    if not args.quiet:
        console = setup_logging(args.verbose)
    else:
        logging.basicConfig(level=logging.ERROR)

    logger = logging.getLogger(__name__)

    try:
        if args.init_config:
            path = ConfigManager.write_example(args.init_config)
            print(f"✓ Example configuration written to: {path}")
            return 0

        if not args.quiet:
            print_banner()
            print("Loading configuration...")

        config = ConfigManager.load(config_path=args.config)

        if args.assets:
            config.set("photos.assets_directory", args.assets)
        if args.content:
            config.set("photos.content_directory", args.content)

        if console is not None and not args.verbose:
            set_console_level(console, config.get("logging.level", "INFO"))

        if not args.quiet:
            add_file_logging(config)
            source = config.config_path or "built-in defaults"
            print(f"✓ Configuration loaded from: {source}")
            print()

        generator = MetadataGenerator(config)

        if not args.quiet:
            print(f"✓ Photos:  {generator.assets_dir}")
            print(f"✓ Records: {generator.content_dir}")
            if generator.analyzer.enabled:
                print(f"✓ AI model: {generator.analyzer.backend.model_name}")
            else:
                print("ℹ️  AI analysis: disabled (filename-based fallback)")
            if not generator.resolver.enabled:
                print("ℹ️  Location lookup: disabled")
            print()

        if args.update_exif:
            mode = "EXIF Update"
            stats = generator.update_exif(single_file=args.file)
        elif args.update_locations:
            mode = "Location Update"
            stats = generator.update_locations(single_file=args.file)
        else:
            mode = "Generation"
            stats = generator.generate(
                force=args.force,
                single_file=args.file,
                confirm=confirm_batch
            )

        if stats.aborted:
            if not args.quiet:
                print("Cancelled.")
            return 0

        if not args.quiet:
            print_summary(stats, mode)

        return 0

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        if not args.quiet:
            print()
            print(f"✗ Configuration Error: {e}")
            print()
            print("Please check your configuration file or create one with:")
            print("  python -m photostream --init-config")
        return 2

    except FatalPipelineError as e:
        logger.error(f"Fatal error: {e}", exc_info=args.verbose)
        if not args.quiet:
            print()
            print(f"✗ Error: {e}")
            print()
            print("Troubleshooting:")
            print("  - Check the photos and content directories in your configuration")
            print("  - Use --assets and --content to override them")
        return 1

    except KeyboardInterrupt:
        if not args.quiet:
            print()
            print()
            print("Processing interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        if not args.quiet:
            print()
            print(f"✗ Unexpected Error: {e}")
            print()
            if not args.verbose:
                print("Run with --verbose for detailed error information")
        return 1


if __name__ == "__main__":
    sys.exit(main())
