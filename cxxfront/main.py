#!/usr/bin/env python3
"""cxxfront/main.py — CLI entry-point for the C/C++ front-end.

Usage examples
--------------
    # Parse a file and print its tree as an S-expression
    python -m cxxfront parse hello.c --dump sexp

    # Force C++ mode and emit JSON to a file
    python -m cxxfront parse widget.h --mode cpp --dump json -o widget.json

    # Show the token stream
    python -m cxxfront tokens hello.c

    # Build a Vi tags file for several sources
    python -m cxxfront tags src/*.c src/*.h -o tags

    # Walk a tree, skipping vendored code, and update an existing tags file
    python -m cxxfront tags src --exclude "third_party" -f tags --append

    # Read from standard input
    cat hello.c | python -m cxxfront parse - --mode c

Exit codes
----------
    0   Success (no errors recorded).
    1   One or more diagnostics with severity ERROR were recorded.
    2   An input file could not be read.
    64  Usage error (bad option or argument).

The module doubles as ``python -m cxxfront`` via the companion
``cxxfront/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence, TextIO

from cxxfront import __version__
from cxxfront.config import FrontendConfig
from cxxfront.errors import Diagnostics, IoError
from cxxfront.lexer import Lexer
from cxxfront.parser import ParseResult, parse_source, resolve_mode
from cxxfront.serialize import DUMP_FORMATS, dump
from cxxfront.source import SourceBuffer
from cxxfront.tags import Tag, TagExtras, collect_tags, find_sources, format_tags, merge_tags, read_tags
from cxxfront.tokens import LanguageMode

_log = logging.getLogger("cxxfront")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_IO: int = 2
EXIT_USAGE: int = 64


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``cxxfront`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("cxxfront")
    root.setLevel(level)
    for old in [h for h in root.handlers if getattr(h, "_cxxfront_cli", False)]:
        root.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._cxxfront_cli = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _load(path: str) -> SourceBuffer:
    """Read *path* (``-`` for stdin) into a buffer; raises :class:`IoError`."""
    if path == "-":
        return SourceBuffer(sys.stdin.buffer.read(), "<stdin>")
    return SourceBuffer.from_file(path)


def _config_from_args(args: argparse.Namespace) -> FrontendConfig:
    return FrontendConfig(
        mode=LanguageMode.from_name(args.mode),
        keep_comments=args.keep_comments,
        max_errors=args.max_errors,
    )


def _emit_diagnostics(diagnostics: Diagnostics, buffer: SourceBuffer, filename: str) -> int:
    """Print diagnostics to stderr; return the number of errors."""
    for line in diagnostics.format(buffer, filename):
        print(line, file=sys.stderr)
    return diagnostics.error_count


def _report_io_error(exc: IoError) -> int:
    _log.error("%s", exc.diagnostic.message)
    print(f"cxxfront: error: {exc.diagnostic.message}", file=sys.stderr)
    return EXIT_IO


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_parse(args: argparse.Namespace) -> int:
    """Parse one file, print its diagnostics and optionally dump the tree."""
    config = _config_from_args(args)
    try:
        buffer = _load(args.file)
    except IoError as exc:
        return _report_io_error(exc)

    result: ParseResult = parse_source(buffer, config=config)
    errors = _emit_diagnostics(result.diagnostics, buffer, buffer.path or args.file)

    if args.dump != "none":
        out = _open_output(args.output)
        try:
            out.write(dump(result.unit, args.dump))
            out.write("\n")
        finally:
            if out is not sys.stdout:
                out.close()

    return EXIT_ERROR if errors else EXIT_OK


def cmd_tokens(args: argparse.Namespace) -> int:
    """Print the token stream, one ``line:col kind text`` entry per line."""
    config = _config_from_args(args)
    try:
        buffer = _load(args.file)
    except IoError as exc:
        return _report_io_error(exc)

    mode = resolve_mode(buffer, config)
    diagnostics = Diagnostics(config.max_errors)
    out = _open_output(args.output)
    try:
        for tok in Lexer(buffer, mode, config.keep_comments, diagnostics).tokens():
            line, col = buffer.locate(tok.span.start)
            out.write(f"{line}:{col}\t{tok.kind.value}\t{tok.text!r}\n")
    finally:
        if out is not sys.stdout:
            out.close()

    errors = _emit_diagnostics(diagnostics, buffer, buffer.path or args.file)
    return EXIT_ERROR if errors else EXIT_OK


def _read_exclude_patterns(patterns: Sequence[str]) -> List[str]:
    """Expand ``@file`` entries into the patterns listed in *file*, one per line."""
    out: List[str] = []
    for pattern in patterns:
        if not pattern.startswith("@"):
            out.append(pattern)
            continue
        path = pattern[1:]
        try:
            text = Path(path).expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            raise IoError(f"cannot read exclude file '{path}': {exc.strerror or exc}", path=path) from exc
        out.extend(line.strip() for line in text.splitlines() if line.strip())
    return out


def _existing_tags(dest: Optional[str]) -> List[Tag]:
    """Tags already in the output file, or none when there is no such file."""
    if dest is None or dest == "-":
        return []
    p = Path(dest).expanduser()
    if not p.is_file():
        _log.info("%s does not exist yet; nothing to append to", p)
        return []
    try:
        return read_tags(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise IoError(f"cannot read '{p}': {exc.strerror or exc}", path=str(p)) from exc


def cmd_tags(args: argparse.Namespace) -> int:
    """Write Vi-compatible tags for every input file.

    Directories are searched recursively; with no inputs the current
    directory is searched.  ``--append`` merges the new tags into the
    existing output file, replacing the entries of re-tagged files.
    """
    config = _config_from_args(args)
    try:
        exclude = _read_exclude_patterns(args.exclude)
        existing = _existing_tags(args.output) if args.append else []
    except IoError as exc:
        return _report_io_error(exc)

    inputs = list(args.leading_files) + list(args.files)
    files = find_sources(inputs or ["."], exclude)
    _log.info("tagging %d files", len(files))

    tags: List[Tag] = []
    status = EXIT_OK
    for path in files:
        try:
            buffer = _load(path)
        except IoError as exc:
            status = _report_io_error(exc)
            continue
        result = parse_source(buffer, config=config)
        if _emit_diagnostics(result.diagnostics, buffer, buffer.path or path) and status == EXIT_OK:
            status = EXIT_ERROR
        found = collect_tags(result.unit, buffer, path, qualified=args.extras.qualified)
        _log.info("%s: %d tags", path, len(found))
        tags.extend(found)

    if args.append:
        tags = merge_tags(existing, tags, files)

    out = _open_output(args.output)
    try:
        out.write(format_tags(tags, sort=args.sort))
    finally:
        if out is not sys.stdout:
            out.close()
    return status


# ===========================================================================
# Argument parser
# ===========================================================================

class _ArgumentParser(argparse.ArgumentParser):
    """``argparse`` with the usage-error exit status set to 64."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _max_errors(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid count: {raw!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return value


_TRUE_WORDS = ("yes", "on", "true", "1")
_FALSE_WORDS = ("no", "off", "false", "0")


def _yes_no(raw: str) -> Optional[bool]:
    word = raw.lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


class _YesNoAction(argparse.Action):
    """``--opt`` or ``--opt=yes|no``.

    A bare option followed by something that is not a yes/no word, as in
    ``--append main.c``, turns the option on and keeps the word as an input
    file.
    """

    def __init__(self, option_strings, dest, **kwargs):
        super().__init__(option_strings, dest, nargs="?", **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        if values is None:
            setattr(namespace, self.dest, True)
            return
        flag = _yes_no(values)
        if flag is None:
            namespace.leading_files = list(getattr(namespace, "leading_files", [])) + [values]
            flag = True
        setattr(namespace, self.dest, flag)


def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    # Shared front-end options --------------------------------------------
    common = _ArgumentParser(add_help=False)
    common.add_argument(
        "--mode",
        choices=["c", "cpp", "auto"],
        default="auto",
        help="Input language (default: auto-detect).",
    )
    common.add_argument(
        "--keep-comments",
        action="store_true",
        help="Keep comment tokens (reported by 'tokens').",
    )
    common.add_argument(
        "--max-errors",
        type=_max_errors,
        default=None,
        metavar="N",
        help="Stop after N errors (default: no limit).",
    )
    common.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )

    # --- Top-level parser --------------------------------------------------
    parser = _ArgumentParser(
        prog="cxxfront",
        description="cxxfront — lexer and parser front-end for C and C++ sources.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              cxxfront parse hello.c --dump sexp
              cxxfront tokens hello.c --keep-comments
              cxxfront tags src/*.c -o tags
              cxxfront tags src --exclude "*_test.c" --sort=no
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
        parser_class=_ArgumentParser,
    )

    # --- parse -------------------------------------------------------------
    p_parse = subparsers.add_parser(
        "parse",
        parents=[common],
        help="Parse a file and report diagnostics.",
    )
    p_parse.add_argument("file", metavar="FILE", help='Source file ("-" for stdin).')
    p_parse.add_argument(
        "--dump",
        choices=list(DUMP_FORMATS),
        default="none",
        help="Print the tree as an S-expression or JSON (default: none).",
    )
    p_parse.set_defaults(func=cmd_parse)

    # --- tokens ------------------------------------------------------------
    p_tokens = subparsers.add_parser(
        "tokens",
        parents=[common],
        help="Print the token stream.",
    )
    p_tokens.add_argument("file", metavar="FILE", help='Source file ("-" for stdin).')
    p_tokens.set_defaults(func=cmd_tokens)

    # --- tags --------------------------------------------------------------
    p_tags = subparsers.add_parser(
        "tags",
        parents=[common],
        help="Generate Vi-compatible tags.",
    )
    p_tags.add_argument(
        "files",
        metavar="PATH",
        nargs="*",
        help="Source files or directories, searched recursively (default: .).",
    )
    p_tags.add_argument(
        "-f",
        dest="output",
        default=None,
        metavar="FILE",
        help="Tags file to write; same as -o.",
    )
    p_tags.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Skip paths matching a shell pattern; @FILE reads patterns from FILE. Repeatable.",
    )
    p_tags.add_argument(
        "--append",
        action=_YesNoAction,
        default=False,
        metavar="yes|no",
        help="Merge into the existing tags file instead of rewriting it.",
    )
    p_tags.add_argument(
        "--sort",
        action=_YesNoAction,
        default=True,
        metavar="yes|no",
        help="Sort tags by name (default: yes).",
    )
    p_tags.add_argument(
        "--extras",
        type=TagExtras.from_string,
        default=TagExtras(),
        metavar="[+|-]q",
        help="+q also emits scope-qualified names such as Dog::setName.",
    )
    p_tags.set_defaults(func=cmd_tags, leading_files=[])

    return parser


# ===========================================================================
# Main
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the cxxfront CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_USAGE

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130  # Standard UNIX convention for SIGINT


# ---------------------------------------------------------------------------
# Module execution support
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
