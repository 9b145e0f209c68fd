# === NAVMAP v1 ===
# {
#   "module": "HitomiFetch.rules",
#   "purpose": "Tokenizer and single-pass extractor turning the rule snippet into an immutable shard table.",
#   "sections": [
#     {
#       "id": "token",
#       "name": "Token",
#       "anchor": "class-token",
#       "kind": "class"
#     },
#     {
#       "id": "tokenize",
#       "name": "tokenize",
#       "anchor": "function-tokenize",
#       "kind": "function"
#     },
#     {
#       "id": "ruletable",
#       "name": "RuleTable",
#       "anchor": "class-ruletable",
#       "kind": "class"
#     },
#     {
#       "id": "parse-rule-snippet",
#       "name": "parse_rule_snippet",
#       "anchor": "function-parse-rule-snippet",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Rule snippet parsing.

The CDN publishes a short script whose ``m`` function maps a shard key to a
small integer and whose ``b`` field carries the current base path. Only one
generator shape is understood::

    var gg = {
        m: function(g) {
            var o = 0;
            switch (g) {
            case 1:
            case 2:
                o = 1; break;
            }
            if (g === 5) { o = 2; }
            return o;
        },
        b: '1700000000/'
    };

Extraction happens in two explicit steps:

1. A single left-to-right walk over the token stream collects the default
   value, the ``case`` groups, the ``if (g === k)`` overrides and the base
   path literal.
2. :func:`_apply_overrides` applies the ``if`` overrides on top of the case
   mapping. Overrides always win, even for keys no ``case`` label mentioned.

Anything outside those units is skipped, so the remaining script can change
freely as long as the units keep their shape.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Tuple

from .errors import RuleParseError

__all__ = ["Token", "tokenize", "RuleTable", "parse_rule_snippet"]

logger = logging.getLogger(__name__)

NUMBER = "NUMBER"
STRING = "STRING"
IDENT = "IDENT"
OP = "OP"
PUNCT = "PUNCT"
OTHER = "OTHER"

# The accumulator and argument names used by the generator.
ACCUMULATOR = "o"
ARGUMENT = "g"
BASE_FIELD = "b"

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*.*?\*/)
  | (?P<number>\d+)
  | (?P<string>'(?:[^'\\\n]|\\.)*'|"(?:[^"\\\n]|\\.)*")
  | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>===|!==|==|!=|=>|&&|\|\||[=+\-*/%<>!?&|^~])
  | (?P<punct>[(){}\[\];:,.])
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int

    def is_(self, kind: str, value: Optional[str] = None) -> bool:
        return self.kind == kind and (value is None or self.value == value)


def tokenize(text: str) -> Iterator[Token]:
    """Yield tokens of ``text``; whitespace and comments are dropped.

    Characters the scanner does not recognise (stray quotes, unicode
    punctuation) become ``OTHER`` tokens instead of aborting, since they can
    only appear in parts of the script the extractor ignores.
    """

    pos = 0
    length = len(text)
    while pos < length:
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            yield Token(OTHER, text[pos], pos)
            pos += 1
            continue
        kind = match.lastgroup
        value = match.group()
        if kind == "number":
            yield Token(NUMBER, value, pos)
        elif kind == "string":
            yield Token(STRING, value[1:-1], pos)
        elif kind == "ident":
            yield Token(IDENT, value, pos)
        elif kind == "op":
            yield Token(OP, value, pos)
        elif kind == "punct":
            yield Token(PUNCT, value, pos)
        pos = match.end()


@dataclass(frozen=True)
class RuleTable:
    """Immutable shard table: explicit entries plus a default value.

    Lookups never fail; keys without an entry resolve to :attr:`default`.
    Instances are read-only and can be shared across threads.
    """

    mapping: Mapping[int, int]
    default: int
    base_path: str

    def __post_init__(self) -> None:
        if not isinstance(self.mapping, MappingProxyType):
            object.__setattr__(self, "mapping", MappingProxyType(dict(self.mapping)))

    @classmethod
    def from_snippet(cls, text: str) -> "RuleTable":
        return parse_rule_snippet(text)

    def lookup(self, key: int) -> int:
        return self.mapping.get(key, self.default)

    def __len__(self) -> int:
        return len(self.mapping)


@dataclass
class _Extraction:
    defaults: List[int] = field(default_factory=list)
    cases: dict = field(default_factory=dict)
    overrides: List[Tuple[int, int]] = field(default_factory=list)
    base_paths: List[Tuple[str, int]] = field(default_factory=list)
    dangling: List[int] = field(default_factory=list)


class _Cursor:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    def peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.index + offset
        if 0 <= idx < len(self.tokens):
            return self.tokens[idx]
        return None

    def matches(self, *pattern: Tuple[str, Optional[str]], offset: int = 0) -> bool:
        for step, (kind, value) in enumerate(pattern):
            token = self.peek(offset + step)
            if token is None or not token.is_(kind, value):
                return False
        return True

    def skip_optional(self, kind: str, value: str) -> None:
        token = self.peek()
        if token is not None and token.is_(kind, value):
            self.index += 1

    @property
    def done(self) -> bool:
        return self.index >= len(self.tokens)


_ASSIGN_TO_ACC = ((IDENT, ACCUMULATOR), (OP, "="), (NUMBER, None))


def _extract(tokens: List[Token]) -> _Extraction:
    found = _Extraction()
    pending: List[int] = []
    cur = _Cursor(tokens)

    while not cur.done:
        tok = cur.peek()

        # var o = <int>
        if tok.kind == IDENT and tok.value in ("var", "let", "const") and cur.matches(
            *_ASSIGN_TO_ACC, offset=1
        ):
            found.defaults.append(int(cur.peek(3).value))
            cur.index += 4
            continue

        # default: o = <int>
        if cur.matches((IDENT, "default"), (PUNCT, ":")):
            cur.index += 2
            if pending:
                found.dangling.extend(pending)
                pending.clear()
            if cur.matches(*_ASSIGN_TO_ACC):
                found.defaults.append(int(cur.peek(2).value))
                cur.index += 3
            continue

        # case <int>:
        if cur.matches((IDENT, "case"), (NUMBER, None), (PUNCT, ":")):
            pending.append(int(cur.peek(1).value))
            cur.index += 3
            continue

        # if (g === <int>) { o = <int> }
        if cur.matches(
            (IDENT, "if"), (PUNCT, "("), (IDENT, ARGUMENT), (OP, "==="), (NUMBER, None), (PUNCT, ")")
        ):
            key = int(cur.peek(4).value)
            cur.index += 6
            braced = cur.matches((PUNCT, "{"))
            if braced:
                cur.index += 1
            if cur.matches(*_ASSIGN_TO_ACC):
                found.overrides.append((key, int(cur.peek(2).value)))
                cur.index += 3
                cur.skip_optional(PUNCT, ";")
                if braced:
                    cur.skip_optional(PUNCT, "}")
            continue

        # b: '<path>'
        if cur.matches((IDENT, BASE_FIELD), (PUNCT, ":"), (STRING, None)):
            previous = cur.peek(-1)
            if previous is None or not previous.is_(PUNCT, "."):
                found.base_paths.append((cur.peek(2).value, tok.position))
            cur.index += 3
            continue

        # o = <int> closing a case group
        if cur.matches(*_ASSIGN_TO_ACC):
            previous = cur.peek(-1)
            if previous is None or not previous.is_(PUNCT, "."):
                value = int(cur.peek(2).value)
                for key in pending:
                    found.cases[key] = value
                pending.clear()
            cur.index += 3
            continue

        cur.index += 1

    found.dangling.extend(pending)
    return found


def _apply_overrides(cases: Mapping[int, int], overrides: List[Tuple[int, int]]) -> dict:
    """Return ``cases`` with every ``if`` override applied; overrides win."""

    merged = dict(cases)
    for key, value in overrides:
        merged[key] = value
    return merged


def parse_rule_snippet(text: str) -> RuleTable:
    """Build a :class:`RuleTable` from the rule snippet source.

    Args:
        text: Raw script text as served by the CDN.

    Returns:
        The immutable rule table.

    Raises:
        RuleParseError: If the default value or the base path is missing, or
            if the snippet carries two different base paths.
    """

    found = _extract(list(tokenize(text)))

    if not found.defaults:
        raise RuleParseError(
            "Rule snippet has no default assignment to 'o'", reason="missing_default"
        )
    if len(found.defaults) > 1:
        logger.debug(f"Rule snippet has {len(found.defaults)} default candidates; using the first")

    if not found.base_paths:
        raise RuleParseError("Rule snippet has no base path literal 'b'", reason="missing_base_path")
    distinct = {path for path, _ in found.base_paths}
    if len(distinct) > 1:
        raise RuleParseError(
            f"Rule snippet has {len(distinct)} different base path literals",
            reason="ambiguous_base_path",
            position=found.base_paths[1][1],
        )

    base_path = found.base_paths[0][0]
    if base_path.endswith("/"):
        base_path = base_path[:-1]

    mapping = _apply_overrides(found.cases, found.overrides)

    if found.dangling:
        logger.debug(f"{len(found.dangling)} case label(s) without assignment fall back to default")
    logger.debug(
        f"Parsed rule snippet: entries={len(mapping)} overrides={len(found.overrides)} "
        f"default={found.defaults[0]} base_path={base_path!r}"
    )

    return RuleTable(mapping=mapping, default=found.defaults[0], base_path=base_path)
