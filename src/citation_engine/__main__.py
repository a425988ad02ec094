"""Command-line entry point for the citation engine."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from citation_engine.cache import CitationCache
from citation_engine.config import Settings, load_settings
from citation_engine.errors import CitationEngineError
from citation_engine.pipeline import build_bibliography
from citation_engine.services.bibtex import parse_bibtex, serialize_bibtex
from citation_engine.services.exchange import ImportResult
from citation_engine.services.lookup import LookupService
from citation_engine.services.ris import parse_ris, serialize_ris
from citation_engine.styles import STYLES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="citation-engine",
        description="Format bibliographies and convert between BibTeX and RIS.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("styles", help="List the available citation styles.")

    format_parser = commands.add_parser("format", help="Render a bibliography from a .bib or .ris file.")
    format_parser.add_argument("file", help="BibTeX or RIS file to format")
    format_parser.add_argument("--style", help="Style id (defaults to CITATION_ENGINE_DEFAULT_STYLE)")
    format_parser.add_argument(
        "--cite",
        nargs="+",
        metavar="ID",
        help="Reference ids cited together, in order of appearance.",
    )
    format_parser.add_argument("--locale", help="Language tag for terms and collation.")
    format_parser.add_argument("--markup", action="store_true", help="Print HTML markup instead of plain text.")

    convert_parser = commands.add_parser("convert", help="Convert between BibTeX and RIS.")
    convert_parser.add_argument("file", help="BibTeX or RIS file to convert")
    convert_parser.add_argument("--to", choices=("bibtex", "ris"), required=True, dest="target")

    lookup_parser = commands.add_parser("lookup", help="Look up a DOI, ISBN or free-text query.")
    lookup_parser.add_argument("identifier", help="DOI, ISBN or bibliographic query")
    return parser


def read_references(path: str) -> ImportResult:
    """Parse a file as RIS when it looks like RIS, otherwise as BibTeX."""
    source = Path(path)
    text = source.read_text(encoding="utf-8")
    if source.suffix.lower() == ".ris" or text.lstrip("\ufeff").lstrip().startswith("TY  -"):
        return parse_ris(text)
    return parse_bibtex(text)


def _report_errors(result: ImportResult) -> int:
    for error in result.errors:
        print(f"skipped {error}", file=sys.stderr)
    return 1 if result.errors else 0


def _run_format(args: argparse.Namespace, settings: Settings) -> int:
    imported = read_references(args.file)
    locale = args.locale or settings.default_locale
    bibliography = build_bibliography(
        imported.references,
        args.style or settings.default_style,
        citation_order=args.cite,
        locale=locale,
        cache=CitationCache(max_entries=settings.render_cache_size),
    )
    if args.cite:
        print(bibliography.cite(args.cite))
        print()
    print(bibliography.markup() if args.markup else bibliography.text())
    return _report_errors(imported)


def _run_convert(args: argparse.Namespace) -> int:
    imported = read_references(args.file)
    serialize = serialize_bibtex if args.target == "bibtex" else serialize_ris
    output = serialize(imported.references)
    sys.stdout.write(output.text)
    for error in output.errors:
        print(f"dropped {error}", file=sys.stderr)
    return _report_errors(imported)


def _run_lookup(args: argparse.Namespace, settings: Settings) -> int:
    result = LookupService(settings=settings).lookup_sync(args.identifier)
    candidates = result if isinstance(result, list) else [result]
    for candidate in candidates:
        print(candidate.model_dump_json(indent=2, exclude_defaults=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
        if args.command == "styles":
            for style in STYLES.values():
                print(f"{style.id}\t{style.title}")
            return 0
        if args.command == "format":
            return _run_format(args, settings)
        if args.command == "convert":
            return _run_convert(args)
        return _run_lookup(args, settings)
    except CitationEngineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
