# src/txlink/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from .analyzer import LinkabilityAnalyzer, LinkabilityReport
from .config import AnalyzerSettings, load_settings
from .errors import DuplicateTxoError, ExitCode, TxlinkException, TxlinkProblem, problem_to_dict
from .types import TxoSet


# =============================================================================
# Helpers: JSON IO + formatting
# =============================================================================

class _JsonObject(dict):
    """JSON object remembering the keys seen more than once in the document."""
    duplicates: List[str]


def _collect_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    obj = _JsonObject()
    obj.duplicates = []
    for k, v in pairs:
        if k in obj:
            obj.duplicates.append(k)
        obj[k] = v
    return obj


def _duplicate_keys(obj: Any, where: str) -> Iterator[Tuple[str, str]]:
    if isinstance(obj, list):
        for i, x in enumerate(obj):
            yield from _duplicate_keys(x, f"{where}[{i}]")
    elif isinstance(obj, dict):
        for k in getattr(obj, "duplicates", []):
            yield where, k
        for k, v in obj.items():
            yield from _duplicate_keys(v, f"{where}.{k}")


def _check_duplicate_keys(doc: Dict[str, Any], path: str) -> None:
    for where, key in _duplicate_keys(doc, "tx"):
        # ids of a side are txos, anything else is a malformed document
        if where in ("tx.inputs", "tx.outputs"):
            raise DuplicateTxoError(where[len("tx."):], key)
        _raise_input_error(
            "TXLINK_DUPLICATE_KEY",
            f"Duplicate key '{key}' in {where}: {path}",
            details={"path": path, "object": where, "key": key},
            remediation="Each key may appear only once per JSON object.",
        )


def _print_payload(payload: Dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str))
    elif fmt == "jsonl":
        print(json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))
    else:
        # "text": caller prints human-friendly output
        pass


def _raise_input_error(code: str, message: str, *, details: Dict[str, Any], remediation: str) -> None:
    raise TxlinkException(
        TxlinkProblem(
            code=code,
            category="input",
            message=message,
            details=details,
            remediation=remediation,
        ),
        ExitCode.INPUT_INVALID,
    )


def _load_json(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        _raise_input_error(
            "TXLINK_INPUT_NOT_FOUND",
            f"Input not found: {path}",
            details={"path": path},
            remediation="Verify the path is correct and the file exists.",
        )
    try:
        obj = json.loads(p.read_text(encoding="utf-8"), object_pairs_hook=_collect_duplicate_keys)
    except ValueError as e:
        raise TxlinkException(
            TxlinkProblem(
                code="TXLINK_INPUT_PARSE_ERROR",
                category="input",
                message=f"Failed to parse JSON: {path}",
                details={"path": path, "error": repr(e)},
                remediation="Ensure the file is valid JSON encoded in UTF-8.",
            ),
            ExitCode.INPUT_INVALID,
            cause=e,
        )
    if not isinstance(obj, dict):
        _raise_input_error(
            "TXLINK_INPUT_TOPLEVEL_NOT_OBJECT",
            f"Input must be a JSON object at top-level: {path}",
            details={"path": path, "type": type(obj).__name__},
            remediation="Wrap the transaction in a JSON object with 'inputs' and 'outputs'.",
        )
    _check_duplicate_keys(obj, path)
    return obj


def _load_settings(path: str | None) -> AnalyzerSettings:
    if not path:
        return AnalyzerSettings()
    try:
        return load_settings(path)
    except (OSError, ValueError) as e:
        raise TxlinkException(
            TxlinkProblem(
                code="TXLINK_CONFIG_INVALID",
                category="config",
                message=f"Invalid settings file: {path}",
                details={"path": path, "error": str(e)},
                remediation="Check max_txos, max_duration, match_policy and options in the settings file.",
            ),
            ExitCode.CONFIG_INVALID,
            cause=e,
        )


def _write_text(path: str | Path, text: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


def _validate_tx(doc: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Minimal fail-closed validation of a transaction document.
    Must match what LinkabilityAnalyzer.process_payload expects.
    """
    errors: List[str] = []
    for side in ("inputs", "outputs"):
        if side not in doc:
            errors.append(f"tx: missing required key '{side}'")
            continue
        txos = doc[side]
        if not isinstance(txos, dict):
            errors.append(f"tx: '{side}' must be an object mapping ids to values")
            continue
        for k, v in txos.items():
            if not _is_int(v):
                errors.append(f"tx.{side}: value of '{k}' must be an integer")

    if "fees" in doc and not (_is_int(doc["fees"]) and doc["fees"] >= 0):
        errors.append("tx: 'fees' must be a non-negative integer")

    linked = doc.get("linked_txos")
    if linked is not None:
        if not isinstance(linked, list) or not all(isinstance(s, list) for s in linked):
            errors.append("tx: 'linked_txos' must be a list of lists of input ids")

    intra = doc.get("intra_fees")
    if intra is not None:
        if not isinstance(intra, dict):
            errors.append("tx: 'intra_fees' must be an object")
        else:
            for k in ("fees_maker", "fees_taker"):
                if k in intra and not _is_int(intra[k]):
                    errors.append(f"tx.intra_fees: '{k}' must be an integer")

    return (len(errors) == 0), errors


def _print_report(report: LinkabilityReport) -> None:
    print("\n== Linkability ==")
    print(f"inputs:  {list(report.txos.inputs.items())}")
    print(f"outputs: {list(report.txos.outputs.items())}")
    print(f"fees: {report.fees}")
    if report.inconclusive:
        print("nb combinations: unknown (max duration reached)")
        return
    print(f"nb combinations: {report.n_combinations}")
    if report.entropy is not None:
        print(f"entropy: {report.entropy:.4f}")

    print("\n== Linkability matrix (outputs x inputs) ==")
    for row in report.matrix:
        print("  " + " ".join(f"{c:>4}" for c in row))

    print("\n== Deterministic links ==")
    links = report.deterministic_links_by_id()
    if not links:
        print("none")
    for out_id, in_id in links:
        print(f"- {in_id} -> {out_id}")


# =============================================================================
# Commands
# =============================================================================

def cmd_validate(args: argparse.Namespace) -> int:
    doc = _load_json(args.tx)
    ok, errors = _validate_tx(doc)

    if ok:
        if args.format in ("json", "jsonl"):
            _print_payload({"ok": True}, args.format)
        else:
            print("OK: transaction is valid")
        return 0

    payload = {"ok": False, "errors": errors}
    if args.format in ("json", "jsonl"):
        _print_payload(payload, args.format)
    else:
        print("INVALID TRANSACTION:")
        for e in errors:
            print(f"- {e}")
    return int(ExitCode.INPUT_INVALID)


def cmd_analyze(args: argparse.Namespace) -> int:
    doc = _load_json(args.tx)
    if args.fees is not None:
        doc = {**doc, "fees": args.fees}

    ok, errors = _validate_tx(doc)
    if not ok:
        if args.format in ("json", "jsonl"):
            _print_payload({"ok": False, "errors": errors}, args.format)
        else:
            for e in errors:
                print(f"ERROR: {e}", file=sys.stderr)
        return int(ExitCode.INPUT_INVALID)

    analyzer = LinkabilityAnalyzer(_load_settings(args.config))
    report = analyzer.process_payload(doc)

    if args.out:
        _write_text(args.out, report.to_json() + "\n")

    if args.format in ("json", "jsonl"):
        _print_payload(report.to_json_dict(), args.format)
    else:
        _print_report(report)
        if args.out:
            print(f"\nWrote report: {args.out}")
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    """
    Two inputs, two outputs, one address reused as input and output.
    """
    txos = TxoSet.from_pairs(
        [
            ("1KHWnqHHx3fQuRwPmwhZGbSYzDbN3SdhoR", 4_900_000_000),
            ("15Z5YJaaNSxeynvr6uW6jQZLwq3n1Hu6RX", 100_000_000),
        ],
        [
            ("1NKToQ48X5qaMo1ndexWmHKnn6FNNViivq", 4_900_000_000),
            ("15Z5YJaaNSxeynvr6uW6jQZLwq3n1Hu6RX", 100_000_000),
        ],
    )
    report = LinkabilityAnalyzer(_load_settings(args.config)).process(txos)

    if args.format in ("json", "jsonl"):
        _print_payload(report.to_json_dict(), args.format)
    else:
        _print_report(report)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="txlink",
        description="Linkability analysis of transaction inputs and outputs.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    sub = parser.add_subparsers(dest="cmd")

    def _add_format(p: argparse.ArgumentParser) -> None:
        p.add_argument("--format", choices=["text", "json", "jsonl"], default="text")

    p_validate = sub.add_parser("validate", help="Validate a transaction document.")
    p_validate.add_argument("--tx", required=True, help="Path to the transaction JSON.")
    _add_format(p_validate)
    p_validate.set_defaults(func=cmd_validate)

    p_analyze = sub.add_parser("analyze", help="Compute the linkability of a transaction.")
    p_analyze.add_argument("--tx", required=True, help="Path to the transaction JSON.")
    p_analyze.add_argument("--config", default=None, help="Path to a YAML/JSON settings file.")
    p_analyze.add_argument("--fees", type=int, default=None, help="Override the fees of the document.")
    p_analyze.add_argument("--out", default=None, help="Write the JSON report to this path.")
    _add_format(p_analyze)
    p_analyze.set_defaults(func=cmd_analyze)

    p_demo = sub.add_parser("demo", help="Analyse a built-in example transaction.")
    p_demo.add_argument("--config", default=None, help="Path to a YAML/JSON settings file.")
    _add_format(p_demo)
    p_demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Entry point used by the console script: `from txlink.cli import main`.
    """
    return _main(argv)


def _main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not getattr(args, "cmd", None):
        parser.print_help()
        return 2

    try:
        return int(args.func(args))
    except TxlinkException as e:
        payload = {"ok": False, "error": problem_to_dict(e.problem), "exit_code": int(e.exit_code)}
        fmt = getattr(args, "format", "text")
        if fmt in ("json", "jsonl"):
            _print_payload(payload, fmt)
        else:
            err = payload["error"]
            print(f"ERROR[{err.get('code', 'TXLINK_ERROR')}]: {err.get('message')}", file=sys.stderr)
            if err.get("remediation"):
                print(f"REMEDIATION: {err['remediation']}", file=sys.stderr)
            print(f"DETAILS: {err.get('details', {})}", file=sys.stderr)
        return int(e.exit_code)


if __name__ == "__main__":
    sys.exit(main())
