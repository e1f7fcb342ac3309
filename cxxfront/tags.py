# cxxfront/tags.py
"""
Vi-compatible tag generation.

Walks a parsed translation unit and emits one line per named entity::

    name<TAB>file<TAB>/^source line$/;"<TAB>kind<TAB>line:N[<TAB>field:value...]

Kind letters
------------
d macro        h header        g enum          e enumerator
s struct       u union         c class         n namespace
t typedef      f function      p prototype     v variable
x extern var   m member        l local variable

Extension fields after ``line``: the enclosing scope (``namespace:Baz``,
``class:Dog``, ``struct:rect``, ``enum:days``), ``access`` for class
members, and ``end`` when a definition spans more than one line.

With ``qualified`` set, scoped entities also get a tag spelled with their
full scope (``Baz::foo``).  :func:`find_sources` expands directories for the
``tags`` command, and :func:`read_tags` plus :func:`merge_tags` update an
existing tags file in place of rewriting it.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cxxfront.ast import (
    ClassDecl,
    DefineDirective,
    EnumDecl,
    Enumerator,
    FieldDecl,
    FunctionDecl,
    IncludeDirective,
    NamedType,
    NamespaceDecl,
    Node,
    QualifiedType,
    StorageClass,
    StructDecl,
    TypedefDecl,
    VarDecl,
)
from cxxfront.source import SourceBuffer, Span
from cxxfront.visitor import DepthFirstVisitor, walk

logger = logging.getLogger(__name__)

__all__ = [
    "SOURCE_SUFFIXES",
    "Tag",
    "TagCollector",
    "TagExtras",
    "collect_tags",
    "escape_address",
    "find_sources",
    "format_tags",
    "is_excluded",
    "merge_tags",
    "parse_tag_line",
    "read_tags",
]

_ADDRESS_SPECIALS = ("\\", "/", "^", "$")


def escape_address(line: str) -> str:
    """Escape characters that are special inside a ``/^...$/`` address."""
    for ch in _ADDRESS_SPECIALS:
        line = line.replace(ch, "\\" + ch)
    return line


@dataclass(frozen=True)
class Tag:
    name: str
    file: str
    line: int
    text: str
    kind: str
    fields: Tuple[Tuple[str, str], ...] = ()

    @property
    def address(self) -> str:
        return f'/^{escape_address(self.text)}$/;"'

    def to_line(self) -> str:
        parts = [self.name, self.file, self.address, self.kind, f"line:{self.line}"]
        parts.extend(f"{key}:{value}" for key, value in self.fields)
        return "\t".join(parts)

    def field(self, key: str) -> Optional[str]:
        for k, v in self.fields:
            if k == key:
                return v
        return None


def _anonymous_names(root: Node) -> Dict[Span, str]:
    """Map the span of each anonymous aggregate to the typedef that names it."""
    names: Dict[Span, str] = {}
    for node in walk(root):
        if not isinstance(node, TypedefDecl):
            continue
        ty = node.aliased_type
        if isinstance(ty, QualifiedType):
            ty = ty.inner
        if isinstance(ty, NamedType) and ty.name is None and ty.definition is not None:
            names.setdefault(ty.definition, node.name)
    return names


class TagCollector(DepthFirstVisitor):
    """Collects :class:`Tag` records from one translation unit."""

    def __init__(self, buffer: SourceBuffer, filename: str, qualified: bool = False) -> None:
        self.buffer = buffer
        self.filename = filename
        self.qualified = qualified
        self.tags: List[Tag] = []
        self._scopes: List[Tuple[str, str]] = []
        self._function_depth = 0
        self._anonymous: Dict[Span, str] = {}

    def collect(self, root: Node) -> List[Tag]:
        self._anonymous = _anonymous_names(root)
        self.visit(root)
        return self.tags

    # -- helpers ----------------------------------------------------------

    def _line_of(self, offset: int) -> int:
        return self.buffer.locate(min(offset, self.buffer.length))[0]

    def _scope_field(self) -> Optional[Tuple[str, str]]:
        if not self._scopes:
            return None
        kind = self._scopes[-1][0]
        return kind, "::".join(name for _, name in self._scopes)

    def _add(
        self,
        name: str,
        kind: str,
        node: Node,
        *extra: Tuple[str, str],
        multiline: bool = False,
        qualifier: Optional[str] = None,
    ) -> None:
        line = self._line_of(node.span.start)
        fields: List[Tuple[str, str]] = []
        scope = self._scope_field()
        if scope is not None:
            fields.append(scope)
        fields.extend(extra)
        if multiline:
            end = self._line_of(max(node.span.end - 1, node.span.start))
            if end > line:
                fields.append(("end", str(end)))
        text = self.buffer.line_text(line)
        self.tags.append(Tag(name, self.filename, line, text, kind, tuple(fields)))
        if qualifier is None and scope is not None:
            qualifier = scope[1]
        if self.qualified and qualifier and kind != "l":
            self.tags.append(Tag(f"{qualifier}::{name}", self.filename, line, text, kind, tuple(fields)))

    def _scoped(self, kind: str, name: str, node: Node) -> None:
        self._scopes.append((kind, name))
        try:
            self.generic_visit(node)
        finally:
            self._scopes.pop()

    # -- directives -------------------------------------------------------

    def visit_include_directive(self, node: IncludeDirective) -> None:
        self._add(node.path, "h", node)

    def visit_define_directive(self, node: DefineDirective) -> None:
        self._add(node.name, "d", node)

    # -- scopes -----------------------------------------------------------

    def visit_namespace_decl(self, node: NamespaceDecl) -> None:
        if node.name is None:
            self.generic_visit(node)
            return
        self._add(node.name, "n", node, multiline=True)
        self._scoped("namespace", node.name, node)

    def visit_enum_decl(self, node: EnumDecl) -> None:
        if node.is_forward:
            return
        name = node.name or self._anonymous.get(node.span)
        if node.name is not None:
            self._add(node.name, "g", node, multiline=True)
        if name is None:
            self.generic_visit(node)
            return
        self._scoped("enum", name, node)

    def visit_enumerator(self, node: Enumerator) -> None:
        self._add(node.name, "e", node)

    def visit_struct_decl(self, node: StructDecl) -> None:
        if node.is_forward:
            return
        tag = "union" if node.is_union else "struct"
        self._aggregate(node, tag, "u" if node.is_union else "s")

    def visit_class_decl(self, node: ClassDecl) -> None:
        if node.is_forward:
            return
        if node.is_union:
            tag, kind = "union", "u"
        elif node.is_struct:
            tag, kind = "struct", "s"
        else:
            tag, kind = "class", "c"
        self._aggregate(node, tag, kind)

    def _aggregate(self, node: Node, tag: str, kind: str) -> None:
        name = node.name or self._anonymous.get(node.span)
        if node.name is not None:
            self._add(node.name, kind, node, multiline=True)
        if name is None:
            self.generic_visit(node)
            return
        self._scoped(tag, name, node)

    # -- declarations -----------------------------------------------------

    def visit_typedef_decl(self, node: TypedefDecl) -> None:
        self._add(node.name, "t", node)

    def visit_field_decl(self, node: FieldDecl) -> None:
        if node.name is None:
            return
        extra = [("access", node.access.value)] if node.access is not None else []
        self._add(node.name, "m", node, *extra)

    def visit_var_decl(self, node: VarDecl) -> None:
        if node.storage_class is StorageClass.EXTERN:
            self._add(node.name, "x", node)
        elif self._function_depth:
            self._add(node.name, "l", node)
        else:
            self._add(node.name, "v", node)

    def visit_function_decl(self, node: FunctionDecl) -> None:
        scope, _, name = node.name.rpartition("::")
        kind = "f" if node.is_definition else "p"
        extra: List[Tuple[str, str]] = []
        if scope and not self._scopes:
            extra.append(("class", scope))
        if node.access is not None:
            extra.append(("access", node.access.value))
        qualifier = None
        if scope:
            outer = self._scope_field()
            qualifier = f"{outer[1]}::{scope}" if outer is not None else scope
        self._add(name, kind, node, *extra, multiline=node.is_definition, qualifier=qualifier)
        for item in node.params + node.initializers:
            if isinstance(item, (DefineDirective, IncludeDirective)):
                self.visit(item)
        if node.body is not None:
            self._function_depth += 1
            try:
                self.visit(node.body)
            finally:
                self._function_depth -= 1


@dataclass
class TagExtras:
    """Optional tag variants, read from a ctags-style string such as ``+q``."""

    qualified: bool = False

    @classmethod
    def from_string(cls, raw: str) -> "TagExtras":
        extras = cls()
        for part in raw.split(","):
            part = part.strip()
            if not part:
                continue
            on = not part.startswith("-")
            name = part.lstrip("+-")
            if name in ("q", "qualified"):
                extras.qualified = on
            else:
                logger.warning("unknown extra %r ignored", part)
        return extras


def collect_tags(
    unit: Node, buffer: SourceBuffer, filename: Optional[str] = None, qualified: bool = False
) -> List[Tag]:
    """Tags for one translation unit, in source order.

    With *qualified*, every scoped entity gets a second tag spelled with its
    full scope, e.g. ``Dog::setName`` next to ``setName``.
    """
    filename = filename or buffer.path or "<input>"
    tags = TagCollector(buffer, filename, qualified).collect(unit)
    logger.debug("collected %d tags from %s", len(tags), filename)
    return tags


def _tag_key(tag: Tag) -> Tuple[str, str, int]:
    return tag.name, tag.file, tag.line


def format_tags(tags: Iterable[Tag], sort: bool = True) -> str:
    """Tag lines, newline-terminated.

    Sorted by name, then file and line, unless *sort* is false, in which
    case the input order is kept.
    """
    ordered = sorted(tags, key=_tag_key) if sort else list(tags)
    return "".join(t.to_line() + "\n" for t in ordered)


# ---------------------------------------------------------------------------
# Existing tag files
# ---------------------------------------------------------------------------

_ADDRESS_END = '$/;"'


def parse_tag_line(line: str) -> Optional[Tag]:
    """Read back one line written by :meth:`Tag.to_line`.

    Returns ``None`` for ``!_TAG_`` header lines and lines that do not have
    the ``name<TAB>file<TAB>/^...$/;"<TAB>kind`` shape.  The source text in
    the address may itself contain tabs.
    """
    line = line.rstrip("\r\n")
    if not line or line.startswith("!_TAG_"):
        return None
    parts = line.split("\t", 2)
    if len(parts) < 3 or not parts[2].startswith("/^"):
        return None
    name, file, rest = parts
    end = rest.find(_ADDRESS_END)
    if end < 0:
        return None
    text = re.sub(r"\\(.)", r"\1", rest[2:end])
    tail = rest[end + len(_ADDRESS_END):].lstrip("\t").split("\t")
    if not tail or not tail[0]:
        return None
    kind = tail[0]
    lineno = 0
    fields: List[Tuple[str, str]] = []
    for part in tail[1:]:
        key, sep, value = part.partition(":")
        if not sep:
            continue
        if key == "line" and value.isdigit():
            lineno = int(value)
        else:
            fields.append((key, value))
    return Tag(name, file, lineno, text, kind, tuple(fields))


def read_tags(text: str) -> List[Tag]:
    """Tags from the contents of an existing tags file; other lines are skipped."""
    tags = [tag for tag in map(parse_tag_line, text.splitlines()) if tag is not None]
    logger.debug("read %d existing tags", len(tags))
    return tags


def merge_tags(existing: Iterable[Tag], fresh: Iterable[Tag], files: Iterable[str]) -> List[Tag]:
    """*existing* tags minus those for *files*, followed by *fresh*.

    Re-tagging a file replaces its old entries instead of duplicating them.
    """
    replaced = set(files)
    merged = [tag for tag in existing if tag.file not in replaced]
    merged.extend(fresh)
    return merged


# ---------------------------------------------------------------------------
# Input discovery
# ---------------------------------------------------------------------------

#: File suffixes picked up when a directory is walked.
SOURCE_SUFFIXES = frozenset({
    ".c", ".h", ".cc", ".cp", ".cpp", ".cxx", ".c++", ".hh", ".hpp", ".hxx", ".h++", ".inl",
})


def is_excluded(path: str, patterns: Sequence[str]) -> bool:
    """True if *path*, or any one of its components, matches a shell pattern."""
    if not patterns:
        return False
    candidates = [path, *Path(path).parts]
    for pattern in patterns:
        for candidate in candidates:
            if fnmatch.fnmatch(candidate, pattern):
                return True
    return False


def find_sources(paths: Iterable[str], exclude: Sequence[str] = ()) -> List[str]:
    """Expand *paths* into the files to tag.

    Directories are walked recursively and yield files whose suffix is in
    :data:`SOURCE_SUFFIXES`, in sorted order.  Other paths are returned
    as given, so that a missing file is reported when it is read.  Anything
    matching an *exclude* pattern is dropped, and an excluded directory is
    not entered.
    """
    found: List[str] = []
    for path in paths:
        if is_excluded(path, exclude):
            logger.debug("excluded %s", path)
            continue
        if not os.path.isdir(path):
            found.append(path)
            continue
        for root, dirs, files in os.walk(path):
            dirs[:] = sorted(d for d in dirs if not is_excluded(os.path.join(root, d), exclude))
            for name in sorted(files):
                full = os.path.join(root, name)
                if os.path.splitext(name)[1].lower() in SOURCE_SUFFIXES and not is_excluded(full, exclude):
                    found.append(full)
    return found
