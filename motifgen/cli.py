"""CLI entrypoints for motifgen commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ConfigError, load_config
from .engine import MotifEngine
from .errors import MotifError
from .extractors import language_for_path
from .logging import configure_logging
from .models import DiscoveredObject, SourceUnit

DEFAULT_STATE_DIR = ".motifgen"


def _add_verbose_option(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_state_dir_option(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help=f"Directory holding the definition store and ledger (defaults to {DEFAULT_STATE_DIR}).",
    )


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="Path to the source file to analyze.")
    parser.add_argument("--language", help="Source language (inferred from the file extension by default).")
    parser.add_argument("--entity", help="Name of the class or struct to extract.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motifgen",
        description="Discover structural motifs in source code and check cross-language compliance.",
    )
    _add_verbose_option(parser)
    _add_state_dir_option(parser)
    parser.add_argument("--log-file", type=Path, help="Also write debug logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _subcommand(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        _add_verbose_option(sub, suppress_default=True)
        _add_state_dir_option(sub, suppress_default=True)
        return sub

    extract_parser = _subcommand("extract", "Print the canonical signature of a source file.")
    _add_source_options(extract_parser)

    discover_parser = _subcommand("discover", "Score a source file against the pattern library.")
    _add_source_options(discover_parser)

    define_parser = _subcommand("define", "Register a formal definition for a discovered motif.")
    _add_source_options(define_parser)
    define_parser.add_argument("--pattern", help="Pattern to define (defaults to the most confident discovery).")
    define_parser.add_argument("--name", help="Canonical name (defaults to the entity name).")
    define_parser.add_argument("--acceptance-bar", type=float, help="Override the configured acceptance bar.")

    validate_parser = _subcommand("validate", "Validate sibling implementations against a stored definition.")
    validate_parser.add_argument("definition", help="Content hash of the definition.")
    validate_parser.add_argument(
        "sources",
        nargs="+",
        help="Source files, optionally prefixed with the language as LANG=PATH.",
    )
    validate_parser.add_argument("--entity", help="Name of the class or struct to extract in every source.")

    show_parser = _subcommand("show", "Print a stored definition.")
    show_parser.add_argument("definition", help="Content hash of the definition.")
    show_parser.add_argument("--versions", action="store_true", help="Print the whole version chain.")

    _subcommand("verify-ledger", "Verify the audit ledger and definition store.")

    serve_parser = _subcommand("serve", "Run the HTTP service.")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for motifgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port, engine_factory=lambda: _build_engine(args))
        return

    try:
        engine = _build_engine(args)
        payload = _dispatch(args, engine)
        engine.persist()
    except ConfigError as exc:
        parser.exit(1, f"motifgen: invalid configuration: {exc}\n")
    except MotifError as exc:
        parser.exit(1, f"motifgen {args.command} failed: {exc}\n")
    except (OSError, ValueError) as exc:
        parser.exit(1, f"motifgen {args.command} failed: {exc}\n")
    print(json.dumps(payload, indent=2, sort_keys=True))


def _build_engine(args: argparse.Namespace) -> MotifEngine:
    config = load_config(Path.cwd())
    state_dir = getattr(args, "state_dir", None)
    if state_dir is not None:
        config.state_dir = Path(state_dir)
    elif config.state_dir is None:
        config.state_dir = config.root / DEFAULT_STATE_DIR
    return MotifEngine(config)


def _dispatch(args: argparse.Namespace, engine: MotifEngine) -> Any:
    command = args.command
    if command == "extract":
        return engine.extract(_read_unit(args.source, args.language, args.entity)).to_dict()
    if command == "discover":
        signature = engine.extract(_read_unit(args.source, args.language, args.entity))
        return [item.to_dict() for item in engine.discover(signature)]
    if command == "define":
        signature = engine.extract(_read_unit(args.source, args.language, args.entity))
        discovered = engine.discover(signature)
        chosen = _choose(discovered, args.pattern)
        definition = engine.define(chosen, args.name, args.acceptance_bar, signature=signature)
        return definition.to_dict()
    if command == "validate":
        units: Dict[str, SourceUnit] = {}
        for spec in args.sources:
            language, _, path = spec.partition("=") if "=" in spec else ("", "", spec)
            unit = _read_unit(path, language or None, args.entity)
            if unit.language_key in units:
                raise ValueError(f"More than one source given for language '{unit.language_key}'")
            units[unit.language_key] = unit
        return engine.validate_sources(args.definition, units).to_dict()
    if command == "show":
        definition = engine.get_definition(args.definition)
        if args.versions:
            return [item.to_dict() for item in engine.store.versions(definition.canonical_name)]
        return definition.to_dict()
    if command == "verify-ledger":
        return engine.verify()
    raise ValueError(f"Unknown command '{command}'")  # pragma: no cover - argparse enforces choices


def _read_unit(path_text: str, language: Optional[str], entity: Optional[str]) -> SourceUnit:
    path = Path(path_text)
    resolved = language or language_for_path(path_text)
    if resolved is None:
        raise ValueError(f"Cannot infer the language of {path_text}; pass --language or LANG=PATH")
    return SourceUnit(language=resolved, text=path.read_text(encoding="utf-8"), entity=entity, origin=str(path))


def _choose(discovered: List[DiscoveredObject], pattern: Optional[str]) -> DiscoveredObject:
    if not discovered:
        raise ValueError("No motif matched the source; nothing to define")
    if pattern is None:
        return discovered[0]
    for item in discovered:
        if pattern in item.patterns:
            return item
    raise ValueError(f"Pattern '{pattern}' was not discovered in the source")


if __name__ == "__main__":
    main(sys.argv[1:])
