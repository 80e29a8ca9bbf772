#!/usr/bin/env python3
"""
X12 Parser Command Line Tool

Parses an X12 interchange into its loop hierarchy and writes the result as JSON.

Usage:
    python main.py                                          # Use sample file
    python main.py input.edi                               # Parse input.edi to input.json
    python main.py input.edi output.json                   # Parse to specific output file
    python main.py input.edi --config 835.5010.json        # Use a specific loop config
    python main.py input.edi --sum CLP:4                   # Total CLP04 across all claims
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Tuple

# Try importing from installed modules first, fallback to src path
try:
    from config_manager import ConfigManager
    from x12_errors import X12Error
    from x12_parser import UnmatchedSegmentPolicy, X12Parser
except ImportError:
    # Add src to path for imports when not installed
    sys.path.insert(0, str(Path(__file__).parent / "src"))
    from config_manager import ConfigManager
    from x12_errors import X12Error
    from x12_parser import UnmatchedSegmentPolicy, X12Parser

DEFAULT_CONFIG_DIR = str(Path(__file__).parent / "src" / "configs")


def parse_sum_option(value: str) -> Tuple[str, int]:
    """Parse a SEG:INDEX option such as 'CLP:4'."""
    segment_id, sep, index = value.partition(":")
    if not sep or not segment_id or not index.isdigit():
        raise argparse.ArgumentTypeError(f"Expected SEGMENT:INDEX (e.g. CLP:4), got '{value}'")
    return segment_id, int(index)


def parse_x12_file(args: argparse.Namespace) -> int:
    """Parse an X12 file and save results to JSON."""

    print(f"X12 Parser - Processing {args.input_file}")
    print("=" * 50)

    manager = ConfigManager(args.config_dir)
    config = manager.get_config(args.config)
    if config is None:
        print(f"Error: Config not found: {args.config} (available: {', '.join(manager.list_configs()) or 'none'})")
        return 1
    print(f"Loaded config: {args.config}")
    if args.show_config:
        print(config.render())

    try:
        parser = X12Parser(
            config,
            unmatched_policy=UnmatchedSegmentPolicy(args.policy),
            check_min_occurs=args.check_min_occurs,
        )
        with open(args.input_file, 'rb') as f:
            document = parser.parse(f)
    except X12Error as e:
        print(f"Error during X12 processing: {e}")
        return 1

    print("X12 parsed successfully!")
    print("\nParsing Results:")
    isa = document.find_segment("ISA")
    if isa and len(isa[0]) > 13:
        print(f"  Interchange Control Number: {isa[0].get_element(13)}")
    print(f"  Segments: {document.segment_count}")
    print(f"  Functional Groups: {len(document.find_segment('GS'))}")
    print(f"  Transaction Sets: {len(document.find_segment('ST'))}")

    if document.warnings:
        print(f"\nParser reported {len(document.warnings)} warnings:")
        for i, warning in enumerate(document.warnings[:5]):  # Show first 5 warnings
            print(f"  {i+1}. {warning.message}")
        if len(document.warnings) > 5:
            print(f"  ... and {len(document.warnings) - 5} more warnings")

    if args.sum:
        segment_id, index = args.sum
        total = 0.0
        segments = document.find_segment(segment_id)
        try:
            for segment in segments:
                total += float(segment.get_element(index))
        except (X12Error, ValueError) as e:
            print(f"Error: Cannot total {segment_id}{index:02d}: {e}")
            return 1
        print(f"\nTotal {segment_id}{index:02d} across {len(segments)} segments: {total:.2f}")

    print("\nGenerating JSON output...")
    json_output = document.model_dump_json(indent=2)
    with open(args.output_file, 'w') as f:
        f.write(json_output)

    print(f"JSON output saved to: {args.output_file}")
    print(f"Output size: {len(json_output):,} characters")
    return 0


def main(argv=None):
    """Main entry point with command line argument parsing."""

    parser = argparse.ArgumentParser(
        description="Parse X12 interchanges into their loop hierarchy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                     # Use samples/sample_835.edi
  python main.py remit.edi                           # Parse remit.edi -> remit.json
  python main.py remit.edi out.json --policy attach  # Keep unmatched segments
  python main.py remit.edi --sum CLP:4               # Total paid amount
        """
    )

    parser.add_argument('input_file', nargs='?', default='samples/sample_835.edi',
                       help='Input X12 file (default: samples/sample_835.edi)')
    parser.add_argument('output_file', nargs='?',
                       help='Output JSON file (default: input_file.json)')
    parser.add_argument('--config', default='835.5010.json',
                       help='Loop config file name (default: 835.5010.json)')
    parser.add_argument('--config-dir', default=DEFAULT_CONFIG_DIR,
                       help='Directory holding loop config files')
    parser.add_argument('--policy', choices=[p.value for p in UnmatchedSegmentPolicy], default='skip',
                       help='What to do with segments no loop accepts (default: skip)')
    parser.add_argument('--check-min-occurs', action='store_true',
                       help='Report loops and segments that occur fewer times than configured')
    parser.add_argument('--sum', type=parse_sum_option, metavar='SEG:INDEX',
                       help='Total a numeric element across every occurrence of a segment')
    parser.add_argument('--show-config', action='store_true',
                       help='Print the loop hierarchy of the config')
    parser.add_argument('--log-level', default='WARNING',
                       help='Logging level (default: WARNING)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
        stream=sys.stderr,
    )

    # Set default output file if not provided
    if not args.output_file:
        input_path = Path(args.input_file)
        args.output_file = str(input_path.with_suffix('.json'))

    # Check if input file exists
    if not Path(args.input_file).exists():
        print(f"Error: Input file not found: {args.input_file}")
        return 1

    return parse_x12_file(args)


if __name__ == "__main__":
    sys.exit(main())
