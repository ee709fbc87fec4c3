from __future__ import annotations

import argparse
import csv
import logging
import sys
import time
from typing import Any, Sequence

from .aggregation import PivotError, PivotResult
from .config import get_settings
from .services import PivotService

logger = logging.getLogger(__name__)


def parse_filter_args(items: Sequence[str] | None) -> dict[str, Any]:
    """Turn ``FIELD=v1,v2`` arguments into predicate payloads.

    Values prefixed with ``#`` are numeric (``DISTANCE=#0,#100``). Repeating
    a field appends to its value list.
    """
    out: dict[str, list[Any]] = {}
    for item in items or []:
        name, sep, raw = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Filter must look like FIELD=v1,v2: {item!r}")
        values = out.setdefault(name, [])
        for token in raw.split(","):
            token = token.strip()
            if token.startswith("#"):
                try:
                    values.append(float(token[1:]))
                except ValueError:
                    raise argparse.ArgumentTypeError(f"Not a number: {token!r}") from None
            else:
                values.append(token)
    return out


def build_parser() -> argparse.ArgumentParser:
    s = get_settings()
    ap = argparse.ArgumentParser(
        prog="pivot-tables",
        description="Compress a delimited file into a sum/count/mean pivot table",
    )
    ap.add_argument("source", help="Delimited input file")
    ap.add_argument("--values", required=True, help="Comma-separated value fields, e.g. PASSENGERS,SEATS")
    ap.add_argument("--index", required=True, help="Pipe-separated group fields, e.g. 'CARRIER|ORIGIN'")
    ap.add_argument("--label", default=None, help="Header for the group column (default: the --index string)")
    ap.add_argument("--rows", type=int, default=s.default_row_limit, help="Only consider the first N rows (-1 = all)")
    ap.add_argument("--output", default=None, help="Write the pivot table here instead of stdout")
    ap.add_argument("--include", action="append", metavar="FIELD=v1,v2", help="Keep rows whose FIELD is one of the values")
    ap.add_argument("--exclude", action="append", metavar="FIELD=v1,v2", help="Drop rows whose FIELD is one of the values")
    ap.add_argument("--mode", choices=["scan", "memory"], default=s.default_mode, help="scan streams the file; memory loads it first")
    ap.add_argument("--text-field", action="append", default=[], help="Load this column as text in memory mode")
    return ap


def print_result(result: PivotResult, out=None) -> None:
    writer = csv.writer(out or sys.stdout)
    writer.writerow(result.header())
    writer.writerows(result.rows())


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        include = parse_filter_args(args.include)
        exclude = parse_filter_args(args.exclude)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    program_start = time.perf_counter()
    service = PivotService(settings)
    try:
        request = service.build_request({
            "source_path": args.source,
            "value_fields": args.values,
            "group_fields": args.index,
            "group_label": args.label,
            "row_limit": args.rows,
            "output_path": args.output,
            "include": include,
            "exclude": exclude,
            "mode": args.mode,
            "text_fields": args.text_field,
        })
        result = service.execute(request)
    except PivotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.output is None:
        print_result(result)
    else:
        print(f"Wrote {len(result)} group(s) to {args.output}", file=sys.stderr)
    print(
        f"The program finished running after {time.perf_counter() - program_start:.3f} seconds "
        f"({result.rows_scanned} row(s) scanned, {result.rows_aggregated} aggregated).",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
