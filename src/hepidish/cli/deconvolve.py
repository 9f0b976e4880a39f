"""
hepidish estimate / hierarchical commands.

Usage:
    hepidish estimate --input beta.csv --reference centEpiFibIC.csv --method RPC -o frac.csv
    hepidish hierarchical --input beta.csv --reference1 centEpiFibIC.csv \\
        --reference2 centBloodSub.csv --aggregate-index 3 --method CP -o frac.csv
"""

import argparse
import logging
from pathlib import Path

from hepidish.cli._validators import _aggregate_index, _nu, _positive_int
from hepidish.cli.config import DeconvolutionConfig, load_config, merge_config_with_args

logger = logging.getLogger(__name__)

_DEFAULTS = DeconvolutionConfig()


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Measurement matrix CSV/TSV (features x samples)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output CSV for estimated fractions")
    parser.add_argument("--method", "-m", choices=["RPC", "CBS", "CP"], type=str.upper,
                        default=_DEFAULTS.method,
                        help=f"Deconvolution method (default: {_DEFAULTS.method})")
    parser.add_argument("--max-iterations", type=_positive_int,
                        default=_DEFAULTS.rpc.max_iterations,
                        help="RPC only: IWLS iteration limit (default: 50)")
    parser.add_argument("--nu", type=_nu, nargs="+", default=_DEFAULTS.cbs.nu,
                        help="CBS only: candidate nu values (default: 0.25 0.5 0.75)")
    parser.add_argument("--constraint", choices=["inequality", "equality"],
                        default=_DEFAULTS.cp.constraint,
                        help="CP only: normalization constraint (default: inequality)")
    parser.add_argument("--workers", type=_positive_int, default=_DEFAULTS.workers,
                        help="Worker threads for per-sample fits (default: 1)")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON config file (CLI arguments take precedence)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the estimate and hierarchical subcommands."""
    estimate = subparsers.add_parser(
        "estimate",
        help="Estimate cell-type fractions against a single reference",
        description="Reference-based deconvolution with RPC, CBS or CP.",
    )
    _add_common_arguments(estimate)
    estimate.add_argument("--reference", "-r", type=Path, default=None,
                          help="Reference centroids CSV/TSV (features x cell types)")
    estimate.set_defaults(func=run_estimate)

    hierarchical = subparsers.add_parser(
        "hierarchical",
        help="Hierarchical deconvolution with a primary and a secondary reference",
        description=(
            "HEpiDISH: estimate coarse cell types with reference1, then split the "
            "aggregate cell type into the sub-types of reference2."
        ),
    )
    _add_common_arguments(hierarchical)
    hierarchical.add_argument("--reference1", type=Path, default=None,
                              help="Primary reference (features x coarse cell types)")
    hierarchical.add_argument("--reference2", type=Path, default=None,
                              help="Secondary reference (features x sub-types)")
    hierarchical.add_argument("--aggregate-index", type=_aggregate_index, default=None,
                              help="1-based column index (or name) of the aggregate "
                                   "cell type in reference1")
    hierarchical.add_argument("--parallel-references", action="store_true",
                              help="Fit the two references concurrently")
    hierarchical.set_defaults(func=run_hierarchical)


def _setup(args: argparse.Namespace) -> argparse.Namespace:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if args.config is not None:
        config = load_config(args.config)
        args = merge_config_with_args(config, args, getattr(args, '_cli_args', None))
        args.method = str(args.method).upper()
    return args


def _require(args: argparse.Namespace, *names: str) -> None:
    missing = [f"--{n.replace('_', '-')}" for n in names if getattr(args, n, None) is None]
    if missing:
        raise ValueError(f"Missing required argument(s): {', '.join(missing)}")


def run_estimate(args: argparse.Namespace) -> int:
    """Execute the estimate command."""
    from hepidish.core.errors import DeconvolutionError
    from hepidish.io import load_matrix, write_fractions
    from hepidish.methods import build_estimator

    try:
        args = _setup(args)
        _require(args, 'input', 'reference', 'output')

        measurement = load_matrix(args.input, kind="measurement")
        reference = load_matrix(args.reference, kind="reference")

        estimator = build_estimator(
            args.method,
            max_iterations=args.max_iterations,
            nu_candidates=args.nu,
            constraint_mode=args.constraint,
            n_jobs=args.workers,
        )
        result = estimator.estimate(measurement, reference)
        write_fractions(result.fractions, args.output)
    except (DeconvolutionError, FileNotFoundError, ValueError) as e:
        logger.error(f"estimate failed: {e}")
        return 1

    logger.info(f"{args.method}: estimated {result.n_samples} samples on {result.n_features} features")
    return 0


def run_hierarchical(args: argparse.Namespace) -> int:
    """Execute the hierarchical command."""
    from hepidish.core.errors import DeconvolutionError
    from hepidish.hierarchy import HierarchicalComposer
    from hepidish.io import load_matrix, write_fractions

    try:
        args = _setup(args)
        _require(args, 'input', 'reference1', 'reference2', 'aggregate_index', 'output')

        composer = HierarchicalComposer(
            method=args.method,
            max_iterations=args.max_iterations,
            nu_candidates=args.nu,
            constraint_mode=args.constraint,
            n_jobs=args.workers,
            parallel_references=args.parallel_references,
        )

        measurement = load_matrix(args.input, kind="measurement")
        reference1 = load_matrix(args.reference1, kind="reference1")
        reference2 = load_matrix(args.reference2, kind="reference2")

        result = composer.run(measurement, reference1, reference2, args.aggregate_index)
        write_fractions(result.fractions, args.output)
    except (DeconvolutionError, FileNotFoundError, ValueError) as e:
        logger.error(f"hierarchical failed: {e}")
        return 1

    logger.info(
        f"{args.method}: split {result.aggregate!r} into {result.secondary.fractions.shape[1]} "
        f"sub-types for {result.fractions.shape[0]} samples"
    )
    return 0
