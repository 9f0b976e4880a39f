"""
hepidish CLI - Command-line interface for reference-based deconvolution.

Commands:
    hepidish estimate      - Estimate fractions against a single reference
    hepidish hierarchical  - Hierarchical estimation with two references (HEpiDISH)
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for hepidish."""
    parser = argparse.ArgumentParser(
        prog="hepidish",
        description="Reference-based cell-type deconvolution for DNA methylation data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  estimate      Estimate cell-type fractions against a single reference
  hierarchical  Hierarchical estimation with a primary and a secondary reference

Examples:
  hepidish estimate -i beta.csv -r centEpiFibIC.csv --method RPC -o frac.csv
  hepidish hierarchical -i beta.csv --reference1 centEpiFibIC.csv \\
      --reference2 centBloodSub.csv --aggregate-index 3 --method CP -o frac.csv
  hepidish hierarchical --config hepidish.yaml --workers 4
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from hepidish.cli import deconvolve
    deconvolve.register_parser(subparsers)

    raw_args = sys.argv[1:] if args is None else list(args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Lets config merging tell explicit CLI values from defaults
    parsed_args._cli_args = raw_args

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
