"""
YMLite - Restricted YAML Loader

A small, indentation-driven parser for the everyday subset of YAML:
block mappings, block sequences, inline scalars and embedded JSON
literals (single- or multi-line). The result is a plain value tree made
of dict, list, str, int, float, bool and None.

Usage:
    import ymlite

    # Load from string
    data = ymlite.loads('''
    server:
      host: localhost
      port: 8080  # Default port
      tags: ["edge", "eu"]
    ''')

    # Load from file
    with open('config.yaml', 'r') as f:
        data = ymlite.load(f)

    # Or let the loader open it
    data = ymlite.load_path('config.yaml')
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable, List, Optional, TextIO, Union

__all__ = [
    'load', 'loads', 'load_path', 'Parser',
    'preprocess', 'indent_of', 'next_sub_indent', 'classify_line',
    'resolve_scalar', 'collect_json_block', 'LineShape', 'Cursor', 'NOT_FOUND',
    'ParseError', 'MissingBlockError', 'RootMixError',
    'ContinuationIndentError', 'JSONLiteralError', 'LoadError',
]

logger = logging.getLogger(__name__)

NOT_FOUND = -1

# ==========================================
# Errors
# ==========================================

class ParseError(Exception):
    def __init__(self, message: str, line: int = 0):
        if line:
            super().__init__(f"Parse error at line {line}: {message}")
        else:
            super().__init__(f"Parse error: {message}")
        self.reason = message
        self.line = line

class MissingBlockError(ParseError):
    """A key or dash promised a nested block that is not there."""

class RootMixError(ParseError):
    """The document root switched between sequence and mapping."""

class ContinuationIndentError(ParseError):
    """Continuation lines of an inline nested sequence changed indentation."""

class JSONLiteralError(ParseError):
    def __init__(self, kind: str, text: str):
        super().__init__(f"Invalid JSON {kind} syntax: {text}")
        self.text = text

class LoadError(Exception):
    def __init__(self, path):
        super().__init__(f"Failed to open config file: {path}")
        self.path = path

# ==========================================
# Data Structures
# ==========================================

class LineShape(Enum):
    BLANK = auto()
    DASH = auto()       # - item
    COLON = auto()      # key: value
    PLAIN = auto()

@dataclass
class Cursor:
    line: int = 0

    def checkpoint(self) -> int:
        return self.line

    def restore(self, mark: int):
        self.line = mark

# ==========================================
# Preprocessor
# ==========================================

_TRAILING_WS = ' \t\r\n'
_QUOTE_OPENERS = ' \t:-[{,'

def _comment_start(line: str, quote_aware: bool) -> int:
    if not quote_aware:
        return line.find('#')

    quote = None
    escape = False
    for i, ch in enumerate(line):
        if quote:
            if escape: escape = False
            elif ch == '\\' and quote == '"': escape = True
            elif ch == quote: quote = None
        elif ch in '"\'' and (i == 0 or line[i - 1] in _QUOTE_OPENERS):
            quote = ch
        elif ch == '#':
            return i
    return -1

def preprocess(source: Union[str, Iterable[str]], quote_aware_comments: bool = False) -> List[str]:
    """Build the line table: comments cut, trailing whitespace trimmed.

    Every physical line is kept, blank ones as empty strings, so that a
    line's index always matches its position in the input. By default the
    first ``#`` starts a comment even inside quotes; pass
    ``quote_aware_comments=True`` to skip over quoted spans.
    """
    if isinstance(source, str):
        raw_lines = source.split('\n')
        # A final newline terminates the last line, it does not open a new one
        if raw_lines[-1] == '':
            raw_lines.pop()
    else:
        raw_lines = source

    lines = []
    for raw in raw_lines:
        if not lines and raw.startswith('\ufeff'):
            raw = raw[1:]
        cut = _comment_start(raw, quote_aware_comments)
        if cut != -1:
            raw = raw[:cut]
        lines.append(raw.rstrip(_TRAILING_WS))
    return lines

# ==========================================
# Indentation Model
# ==========================================

def indent_of(line: str) -> int:
    """Weighted leading whitespace: a space counts 1, a tab counts 2."""
    width = 0
    for ch in line:
        if ch == ' ': width += 1
        elif ch == '\t': width += 2
        else: break
    return width

def next_sub_indent(lines: List[str], start: int, parent_indent: int) -> int:
    """Indentation of the first non-blank line at or after ``start``.

    Returns ``NOT_FOUND`` unless that line sits strictly deeper than
    ``parent_indent``.
    """
    for i in range(start, len(lines)):
        if not lines[i]:
            continue
        indent = indent_of(lines[i])
        return indent if indent > parent_indent else NOT_FOUND
    return NOT_FOUND

def classify_line(line: str) -> LineShape:
    content = line.lstrip(' \t')
    if not content: return LineShape.BLANK
    if content[0] == '-': return LineShape.DASH
    if ':' in content: return LineShape.COLON
    return LineShape.PLAIN

# ==========================================
# Scalar Resolver
# ==========================================

_KEYWORDS = {
    'null': None, '~': None, 'Null': None, 'NULL': None,
    'true': True, 'True': True, 'TRUE': True,
    'false': False, 'False': False, 'FALSE': False,
    '.inf': math.inf, '.Inf': math.inf, '.INF': math.inf, '+.inf': math.inf,
    '-.inf': -math.inf, '-.Inf': -math.inf, '-.INF': -math.inf,
    '.nan': math.nan, '.NaN': math.nan, '.NAN': math.nan,
}

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', "'": "'"}

_BASES = {
    'x': (16, re.compile(r'[0-9a-fA-F]*')),
    'o': (8, re.compile(r'[0-7]*')),
    'b': (2, re.compile(r'[01]*')),
}

# Leading numeric prefixes; trailing text after a valid prefix is ignored
_FLOAT_RE = re.compile(
    r'[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)', re.IGNORECASE)
_INT_RE = re.compile(r'[+-]?\d+')

def _is_delimited(text: str, opener: str, closer: str) -> bool:
    return len(text) >= 2 and text[0] == opener and text[-1] == closer

def _parse_json_literal(text: str, kind: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise JSONLiteralError(kind, text) from exc

def _unescape(content: str) -> str:
    if '\\' not in content: return content
    res = []
    i = 0
    while i < len(content):
        ch = content[i]
        if ch == '\\' and i + 1 < len(content):
            esc = content[i + 1]
            # Unknown escapes keep the character and drop the backslash
            res.append(_ESCAPES.get(esc, esc))
            i += 2
        else:
            res.append(ch)
            i += 1
    return ''.join(res)

def _resolve_number(val: str) -> Union[int, float, str]:
    """Read the longest numeric prefix of ``val``; no prefix means a string."""
    if len(val) > 2 and val[0] == '0' and val[1].lower() in _BASES:
        base, digits_re = _BASES[val[1].lower()]
        digits = digits_re.match(val, 2).group()
        if digits:
            return int(digits, base)
        # "0x" with no hex digits still reads the leading zero
        return 0 if base == 16 else val

    if '.' in val or 'e' in val or 'E' in val:
        match = _FLOAT_RE.match(val)
        return float(match.group()) if match else val

    match = _INT_RE.match(val)
    return int(match.group()) if match else val

def resolve_scalar(value: str) -> Any:
    """Convert one inline token into a typed value.

    Bracketed text is parsed as JSON (malformed text is an error), quoted
    text is unescaped and stays a string, then keywords and numbers are
    tried. Anything else is returned as the trimmed string.
    """
    val = value.strip(' \t')

    if _is_delimited(val, '[', ']'): return _parse_json_literal(val, 'array')
    if _is_delimited(val, '{', '}'): return _parse_json_literal(val, 'object')

    if _is_delimited(val, '"', '"') or _is_delimited(val, "'", "'"):
        return _unescape(val[1:-1])

    if val in _KEYWORDS: return _KEYWORDS[val]

    return _resolve_number(val)

# ==========================================
# Embedded-JSON Detector
# ==========================================

class _BracketBalance:
    """Running brace/bracket counters that ignore quoted spans."""

    def __init__(self):
        self.curly = 0
        self.square = 0
        self.quote = None
        self.escape = False

    def feed(self, text: str):
        for ch in text:
            if self.quote:
                if self.escape: self.escape = False
                elif ch == '\\': self.escape = True
                elif ch == self.quote: self.quote = None
            elif ch in '"\'': self.quote = ch
            elif ch == '{': self.curly += 1
            elif ch == '}': self.curly -= 1
            elif ch == '[': self.square += 1
            elif ch == ']': self.square -= 1

    @property
    def closed(self) -> bool:
        return self.curly <= 0 and self.square <= 0

def collect_json_block(lines: List[str], cursor: Cursor, indent: int) -> Optional[str]:
    """Gather one bracket-balanced JSON literal starting at ``cursor``.

    The literal must open with ``{`` or ``[`` on the first non-blank line,
    at exactly ``indent``. Later lines may sit at any depth not shallower
    than ``indent``; a blank line counts as depth 0. On success the cursor
    moves past the literal and the newline-joined text is returned;
    otherwise the cursor is left alone and None is returned.
    """
    i = cursor.line
    while i < len(lines) and not lines[i]:
        i += 1
    if i >= len(lines) or indent_of(lines[i]) != indent:
        return None
    if lines[i].lstrip(' \t')[0] not in '{[':
        return None

    balance = _BracketBalance()
    chunks = []
    while i < len(lines):
        raw = lines[i]
        if indent_of(raw) < indent:
            return None
        content = raw.lstrip(' \t')
        chunks.append(content)
        balance.feed(content)
        i += 1
        if balance.closed:
            cursor.line = i
            return '\n'.join(chunks)
    return None

# ==========================================
# Structural Parser
# ==========================================

def _split_entry(text: str):
    key, _, value = text.partition(':')
    return key.rstrip(' \t'), value.lstrip(' \t')

class Parser:
    """Recursive-descent parser over one preprocessed line table.

    The parser keeps no cursor of its own; ``parse`` creates one per call
    and hands it down explicitly, so the same instance can be parsed
    again.
    """

    def __init__(self, source: Union[str, Iterable[str]], *, quote_aware_comments: bool = False):
        self.lines = preprocess(source, quote_aware_comments)
        logger.debug('Preprocessed %d lines', len(self.lines))

    def parse(self) -> Any:
        return self._parse_document(Cursor())

    def _parse_document(self, cur: Cursor) -> Any:
        lines = self.lines
        root = {}
        sequence = None

        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)

            if shape is LineShape.BLANK:
                cur.line += 1
                continue

            if line[0] == '-':
                if root:
                    raise RootMixError("Cannot mix sequences and mappings at root level", cur.line + 1)
                if sequence is None:
                    logger.debug('Line %d: root document is a sequence', cur.line + 1)
                    sequence = []
                sequence.extend(self._parse_sequence(cur, 0))
                continue

            # Stray lines at the root are ignored
            if ':' not in line:
                cur.line += 1
                continue

            if sequence is not None:
                raise RootMixError("Cannot mix sequences and mappings at root level", cur.line + 1)

            indent = indent_of(line)
            key, value = _split_entry(line.lstrip(' \t'))
            cur.line += 1
            root[key] = self._entry_value(cur, indent, key, value)

        return root if sequence is None else sequence

    def parse_value(self, cur: Cursor, indent: int) -> Any:
        """Parse whatever block starts at ``indent``.

        Lines deeper than ``indent`` are skipped until the block is found.
        Returns None when the next content line is shallower, meaning there
        is no value at this level.
        """
        lines = self.lines
        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)
            if shape is LineShape.BLANK:
                cur.line += 1
                continue

            line_indent = indent_of(line)
            if line_indent < indent:
                return None
            if line_indent > indent:
                cur.line += 1
                continue

            content = line.lstrip(' \t')
            if content[0] in '[{':
                found = self._try_json_block(cur, indent)
                if found is not None:
                    return found

            if shape is LineShape.DASH: return self._parse_sequence(cur, indent)
            if shape is LineShape.COLON: return self._parse_mapping(cur, indent)

            cur.line += 1
            return resolve_scalar(content)
        return None

    def _try_json_block(self, cur: Cursor, indent: int) -> Optional[Union[list, dict]]:
        mark = cur.checkpoint()
        text = collect_json_block(self.lines, cur, indent)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.debug('Line %d: bracketed block is not JSON, parsing as YAML', mark + 1)
            cur.restore(mark)
            return None

    def _parse_nested_block(self, cur: Cursor, parent_indent: int, subject: str) -> Any:
        sub_indent = next_sub_indent(self.lines, cur.line, parent_indent)
        if sub_indent == NOT_FOUND:
            raise MissingBlockError(f"Expected indented block for {subject}", cur.line)
        sub = self.parse_value(cur, sub_indent)
        if sub is None:
            raise MissingBlockError(f"Failed to parse block for {subject}", cur.line)
        return sub

    def _entry_value(self, cur: Cursor, parent_indent: int, key: str, value: str) -> Any:
        if not value:
            return self._parse_nested_block(cur, parent_indent, f"key '{key}'")
        return resolve_scalar(value)

    def _parse_sequence(self, cur: Cursor, indent: int) -> list:
        lines = self.lines
        items = []
        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)
            if shape is LineShape.BLANK:
                cur.line += 1
                continue
            if indent_of(line) != indent or shape is not LineShape.DASH:
                break

            cur.line += 1
            value = line.lstrip(' \t')[1:].lstrip(' \t')

            if not value:
                items.append(self._parse_nested_block(cur, indent, 'sequence item'))
            elif value[0] == '-':
                items.append(self._parse_inline_sequence(cur, indent, value))
            elif ':' in value:
                items.append(self._parse_inline_mapping(cur, indent, value))
            else:
                items.append(resolve_scalar(value))
        return items

    def _parse_inline_sequence(self, cur: Cursor, indent: int, value: str) -> list:
        # "- - a - b" on one line, optionally continued by deeper "- c" lines
        nested = []
        remaining = value
        while remaining.startswith('-'):
            item, sep, rest = remaining[1:].lstrip(' \t').partition(' -')
            remaining = ('-' + rest).lstrip(' \t') if sep else ''
            if item:
                nested.append(resolve_scalar(item))

        lines = self.lines
        sub_indent = NOT_FOUND
        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)
            if shape is LineShape.BLANK:
                cur.line += 1
                continue
            line_indent = indent_of(line)
            if line_indent <= indent or shape is not LineShape.DASH:
                break
            if sub_indent == NOT_FOUND:
                sub_indent = line_indent
            elif line_indent != sub_indent:
                raise ContinuationIndentError(
                    "Inconsistent indentation in nested sequence continuation", cur.line + 1)
            cur.line += 1
            nested.append(resolve_scalar(line.lstrip(' \t')[1:]))
        return nested

    def _parse_inline_mapping(self, cur: Cursor, indent: int, value: str) -> dict:
        # "- key: value" followed by more keys one level deeper
        obj = {}
        key, val = _split_entry(value)
        obj[key] = self._entry_value(cur, indent, key, val)

        lines = self.lines
        key_indent = NOT_FOUND
        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)
            if shape is LineShape.BLANK:
                cur.line += 1
                continue
            line_indent = indent_of(line)
            if line_indent <= indent or ':' not in line:
                break
            # A new deeper indentation ends the mapping quietly
            if key_indent == NOT_FOUND:
                key_indent = line_indent
            elif line_indent != key_indent:
                break
            cur.line += 1
            key, val = _split_entry(line.lstrip(' \t'))
            obj[key] = self._entry_value(cur, key_indent, key, val)
        return obj

    def _parse_mapping(self, cur: Cursor, indent: int) -> dict:
        lines = self.lines
        obj = {}
        while cur.line < len(lines):
            line = lines[cur.line]
            shape = classify_line(line)
            if shape is LineShape.BLANK:
                cur.line += 1
                continue
            if indent_of(line) != indent or ':' not in line:
                break
            cur.line += 1
            key, value = _split_entry(line.lstrip(' \t'))
            obj[key] = self._entry_value(cur, indent, key, value)
        return obj

# ==========================================
# Public API
# ==========================================

def loads(source: str, *, quote_aware_comments: bool = False) -> Any:
    """Parse YAML-subset source string."""
    return Parser(source, quote_aware_comments=quote_aware_comments).parse()

def load(fp: TextIO, *, quote_aware_comments: bool = False) -> Any:
    """Parse YAML-subset text from a file-like object."""
    return Parser(fp, quote_aware_comments=quote_aware_comments).parse()

def load_path(path, *, encoding: str = 'utf-8', quote_aware_comments: bool = False) -> Any:
    """Open ``path`` and parse it. Unreadable files raise LoadError."""
    try:
        with open(path, 'r', encoding=encoding) as fp:
            lines = list(fp)
    except OSError as exc:
        raise LoadError(path) from exc
    return Parser(lines, quote_aware_comments=quote_aware_comments).parse()
