"""Command-line entry point for the Kube Guardrails scanner."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

from .exceptions import GuardrailsError
from .options import (
    ScannerOption,
    with_debug_writer,
    with_embedded_policies,
    with_frameworks,
    with_per_result_tracing,
    with_policy_dirs,
    with_policy_namespaces,
    with_skip_required_check,
    with_spec,
)
from .result import Results, format_summary_table
from .scanner import Scanner

STDIN_PATH = "-"
STDIN_FILENAME = "stdin.yaml"
EXIT_USAGE_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kube-guardrails",
        description="Policy scanner for Kubernetes manifests",
    )
    parser.add_argument(
        "path",
        help="Directory or manifest file to scan ('-' reads one manifest from stdin).",
    )
    parser.add_argument(
        "--policy-dir",
        "-p",
        dest="policy_dirs",
        action="append",
        default=[],
        help="Directory of YAML policies to load in addition to the embedded ones (repeatable).",
    )
    parser.add_argument(
        "--no-embedded",
        action="store_true",
        help="Do not load the embedded policy pack.",
    )
    parser.add_argument(
        "--skip-required-check",
        action="store_true",
        help="Parse every YAML/JSON file, not only files containing apiVersion, kind and metadata.",
    )
    parser.add_argument(
        "--framework",
        dest="frameworks",
        action="append",
        default=[],
        help="Only run policies belonging to this framework (repeatable, defaults to 'default').",
    )
    parser.add_argument(
        "--spec",
        default="",
        help="Only run policies listed under this compliance spec (e.g. k8s-nsa).",
    )
    parser.add_argument(
        "--namespace",
        dest="namespaces",
        action="append",
        default=[],
        help="Also allow external policies declared under this namespace (repeatable).",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Attach condition traces to every result in the JSON report.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Write scanner debug output to stderr.",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the JSON report (e.g., artifacts/scan.json).",
    )
    return parser


def options_from_args(args: argparse.Namespace) -> List[ScannerOption]:
    opts: List[ScannerOption] = [
        with_embedded_policies(not args.no_embedded),
        with_skip_required_check(args.skip_required_check),
        with_per_result_tracing(args.trace),
    ]
    if args.policy_dirs:
        opts.append(with_policy_dirs(*(str(Path(d).resolve()) for d in args.policy_dirs)))
    if args.frameworks:
        opts.append(with_frameworks(*args.frameworks))
    if args.spec:
        opts.append(with_spec(args.spec))
    if args.namespaces:
        opts.append(with_policy_namespaces(*args.namespaces))
    if args.debug:
        opts.append(with_debug_writer(sys.stderr))
    return opts


def run_scan(scanner: Scanner, path: str) -> Results:
    if path == STDIN_PATH:
        return scanner.scan_reader(None, STDIN_FILENAME, sys.stdin.buffer)
    return scanner.scan_path(path)


def write_output(results: Results, output_path: str | None) -> None:
    print(format_summary_table(results))

    payload = json.dumps(results.to_dict(), indent=2)
    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload, encoding="utf-8")
        print(f"\nReport written to {output_path}")


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    scanner = Scanner(*options_from_args(args))
    try:
        results = run_scan(scanner, args.path)
    except GuardrailsError as exc:
        print(f"Scan failed: {exc}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    write_output(results, args.output_path)
    return results.exit_code()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
