"""Command-line interface for incremental slice finding."""
import argparse
import sys
from pathlib import Path

import numpy as np

from .miner import SliceFinder
from .factory import AlgorithmRegistry
from .config import config
from .core.data_structures import EvalMode, PruningStrategy
from .utils.formatters import format_slices


def _read_removed(path: str) -> np.ndarray:
    """Row positions to delete, whitespace or comma separated."""
    text = Path(path).read_text().replace(',', ' ')
    return np.array([int(token) for token in text.split()], dtype=np.int64)


def _resolve_state(name: str) -> Path:
    """Bare file names live in the configured state directory."""
    path = Path(name)
    if path.parent == Path('.') and not path.exists():
        return config.state_path(path.name)
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Incremental top-k slice finding',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List available algorithms
  incslice --list

  # Top-4 slices of a CSV with an error column
  incslice data.csv --error-column error -k 4 --min-support 32

  # Keep state for incremental runs; later runs add the rows of the CSV
  incslice day1.csv --error-column error --state run.npz
  incslice day2.csv --error-column error --state run.npz --remove-rows stale.txt

  # Save results to file
  incslice data.csv --error-column error --output slices.json --csv slices.csv
        """
    )

    parser.add_argument('--list', action='store_true',
                        help='List available algorithms and exit')
    parser.add_argument('--version', action='store_true',
                        help='Show version and exit')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose output')
    parser.add_argument('data', nargs='?',
                        help='Path to input CSV file (added rows for incremental runs)')
    parser.add_argument('--algorithm', '-a', default='incsliceline',
                        help='Algorithm name (default: incsliceline, use --list to see available)')
    parser.add_argument('--error-column', '-e', default='error',
                        help='Name of the error column (default: error)')
    parser.add_argument('-k', type=int, default=4,
                        help='Number of top slices (default: 4)')
    parser.add_argument('--min-support', '-s', type=int, default=32,
                        help='Minimum slice size in rows (default: 32)')
    parser.add_argument('--alpha', type=float, default=0.5,
                        help='Weight of the error term in [0, 1] (default: 0.5)')
    parser.add_argument('--max-level', '-l', type=int, default=0,
                        help='Maximum predicates per slice, 0 = unlimited (default: 0)')
    parser.add_argument('--eval-mode', choices=[m.value for m in EvalMode], default='blocked',
                        help='Candidate evaluation mode (default: blocked)')
    parser.add_argument('--block-size', type=int, default=16,
                        help='Candidates per block in blocked evaluation (default: 16)')
    parser.add_argument('--pruning', choices=[s.value for s in PruningStrategy], default='exact-only',
                        help='Incremental pruning strategy (default: exact-only)')
    parser.add_argument('--feature-selection', action='store_true',
                        help='Evaluate on the selected level-1 columns only')
    parser.add_argument('--compact', action='store_true',
                        help='Persist lattice levels as id codes')
    parser.add_argument('--n-jobs', '-j', type=int, default=config.n_jobs,
                        help='Worker threads for blocked evaluation (-1 for all cores, default: 1)')
    parser.add_argument('--state', type=str,
                        help=('State file; an existing file makes the run incremental, then it is overwritten. '
                              'Bare names resolve inside INCSLICE_STATE_DIR'))
    parser.add_argument('--remove-rows', type=str,
                        help='File of prior row positions to delete (incremental runs only)')
    parser.add_argument('--output', '-o', type=str,
                        help='Output file path (JSON format)')
    parser.add_argument('--csv', type=str,
                        help='Output file path (CSV format)')
    parser.add_argument('--no-print', action='store_true',
                        help='Don\'t print slices to stdout')
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"incslice version {__version__}")
        sys.exit(0)

    if args.list:
        algorithms = AlgorithmRegistry.list_algorithms()
        print("Available algorithms:")
        for algo in algorithms:
            print(f"  - {algo}")
        sys.exit(0)

    if not args.data:
        parser.error("data file path is required")

    data_path = Path(args.data)
    if not data_path.exists():
        print(f"Error: File not found: {args.data}", file=sys.stderr)
        sys.exit(1)

    state_path = _resolve_state(args.state) if args.state else None
    incremental = state_path is not None and state_path.exists()
    if args.remove_rows and not incremental:
        parser.error("--remove-rows requires an existing --state file")

    if args.verbose:
        config.verbose = True
        config.suppress_prints = False
        config.log_level = "INFO"
        config.setup_logging()

    try:
        finder = SliceFinder(
            algorithm=args.algorithm,
            state=state_path if incremental else None,
            k=args.k,
            min_support=args.min_support,
            alpha=args.alpha,
            max_level=args.max_level,
            eval_mode=args.eval_mode,
            block_size=args.block_size,
            pruning_strategy=args.pruning,
            feature_selection=args.feature_selection,
            compact_encoding=args.compact,
            verbose=args.verbose,
            n_jobs=args.n_jobs,
        )

        if incremental:
            removed = _read_removed(args.remove_rows) if args.remove_rows else None
            print(f"Updating slices from {state_path} with {args.data}...")
            finder.update(str(data_path), removed=removed, error_column=args.error_column)
        else:
            print(f"Finding slices with {args.algorithm} (k={args.k}, min_support={args.min_support})...")
            finder.fit(str(data_path), error_column=args.error_column)

        result = finder.get_result()
        print(result.summary())

        if not args.no_print:
            print("\nSlices:")
            for i, line in enumerate(format_slices(result.slices), 1):
                print(f"  {i}. {line}")

        if state_path is not None:
            finder.save(state_path)
            print(f"\nState saved to: {state_path}")

        if args.output:
            result.save_json(args.output)
            print(f"\nResults saved to: {args.output}")

        if args.csv:
            result.save_csv(args.csv)
            print(f"Results saved to: {args.csv}")

        sys.exit(0)

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
