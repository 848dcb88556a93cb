"""DICOM Stacker - Command Line Interface

Reads a folder of DICOM slices (one series), orders them by acquisition
time and writes a single volumetric image.

Examples:
    dicom-stacker -i /some/dicom/folder -o /other/path/angio.mha
    dicom-stacker -v -i /some/dicom/folder -o /other/path/angio.mha
"""

import argparse
import sys
import traceback
from pathlib import Path

from dicom_stacker import __version__
from dicom_stacker.core.assembler import SeriesAssembler
from dicom_stacker.core.config import (
    AssemblyConfig,
    LoggingConfig,
    Settings,
    get_settings,
)
from dicom_stacker.core.constants import SeriesSelection
from dicom_stacker.core.exceptions import StackerError
from dicom_stacker.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="dicom-stacker",
        description=(
            "DICOM Stacker - Assemble a DICOM series into one volume "
            "ordered by acquisition time"
        ),
        epilog="Example: %(prog)s -i ./dicom/series -o ./angio.mha -v",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-i",
        "--input",
        required=True,
        metavar="DIR",
        help="Folder containing the DICOM slices",
    )
    parser.add_argument(
        "-o",
        "--output",
        required=True,
        metavar="PATH",
        help="Volume file to write (format from extension, e.g. .mha, .nrrd)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging output"
    )
    parser.add_argument(
        "--version", action="version", version=f"DICOM Stacker v{__version__}"
    )

    assembly_group = parser.add_argument_group("assembly options")
    assembly_group.add_argument(
        "--strict-keys",
        action="store_true",
        default=None,
        help="Reject ordering tag values with trailing non-numeric text",
    )
    assembly_group.add_argument(
        "--on-multiple-series",
        choices=[s.value for s in SeriesSelection],
        default=None,
        help="Use the first series found or fail when there are several "
        "(default: first)",
    )
    assembly_group.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="N",
        help="Decode slices with N threads (default: 1)",
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit log lines as JSON"
    )
    parser.add_argument(
        "--log-file", metavar="PATH", help="Also write log lines to PATH"
    )

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return a copy of ``settings`` with command line flags applied.

    Raises:
        ValueError: If a flag value fails validation

    """
    assembly: dict = {}
    if args.strict_keys is not None:
        assembly["strict_keys"] = args.strict_keys
    if args.on_multiple_series is not None:
        assembly["series_selection"] = SeriesSelection(args.on_multiple_series)
    if args.workers is not None:
        assembly["max_workers"] = args.workers

    log: dict = {}
    if args.verbose:
        log["log_level"] = "DEBUG"
    if args.json_logs:
        log["log_format"] = "json"
    if args.log_file:
        log["log_file"] = args.log_file

    return settings.model_copy(
        update={
            "assembly": AssemblyConfig.model_validate(
                {**settings.assembly.model_dump(), **assembly}
            ),
            "logging": LoggingConfig.model_validate(
                {**settings.logging.model_dump(), **log}
            ),
        }
    )


def main(argv: list[str] | None = None) -> int:
    """Run the stacker.

    Returns:
        Exit code: 0 on success, 1 on failure. Usage errors exit with 2
        through argparse.

    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        settings = apply_overrides(get_settings(), args)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(
        log_level=settings.logging.log_level.value,
        json_format=settings.logging.log_format == "json",
        log_file=settings.logging.log_file,
    )
    logger.debug("configuration", summary=settings.get_summary())

    print("inputs:")
    print(f"\t-i {args.input}")
    print(f"\t-o {args.output}")
    if args.verbose:
        print("\t-v")

    try:
        assembler = SeriesAssembler(config=settings.assembly)
        volume = assembler.run(Path(args.input), Path(args.output))
    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Stopped by user", file=sys.stderr)
        return 130
    except StackerError as e:
        logger.error("assembly_failed", error_code=e.error_code, **e.context)
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"[ERROR] Unexpected failure: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1

    columns, rows, count = volume.size
    print(f"[+] Output volume written to {args.output} ({columns}x{rows}x{count})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
