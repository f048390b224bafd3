"""
Canticle Backend — Search Query Parsing
=========================================

What:  Turns a free-text query into AND-groups of OR-clauses plus exclusions.
How:   Web-search style syntax, the same shape PostgreSQL's
       websearch_to_tsquery accepts:

           amazing grace          both words
           "amazing grace"        the words next to each other
           grace or mercy         either word
           grace -amazing         grace, but not amazing

Degradation:
    Parsing never fails. An odd number of double quotes makes every quote
    literal (they are dropped and the words become plain terms); a leading
    or trailing `or`, a lone `-` and empty quotes are ignored; stop words
    are dropped as standalone terms but kept inside quoted phrases.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from canticle.search.text import is_stop_word, normalize_phrase, stem_all, tokenize

_TOKEN_RE = re.compile(r'(-?)"([^"]*)"|(\S+)')


@dataclass(frozen=True)
class Clause:
    """One term, or a phrase when it holds several words."""

    words: Tuple[str, ...]
    stems: Tuple[str, ...]

    @classmethod
    def of(cls, words: List[str]) -> "Clause":
        return cls(words=tuple(words), stems=tuple(stem_all(words)))

    @property
    def is_phrase(self) -> bool:
        return len(self.stems) > 1


@dataclass(frozen=True)
class ParsedQuery:
    """
    A parsed query.

    Attributes:
        raw:       The query string as received
        phrase:    The normalized query ("Amazing  Grace!" → "amazing grace"),
                   used for title-prefix and substring checks
        groups:    AND of OR-clauses; empty when only stop words were given
        excluded:  Clauses that disqualify a document when they match
    """

    raw: str
    phrase: str
    groups: Tuple[Tuple[Clause, ...], ...]
    excluded: Tuple[Clause, ...]

    @property
    def is_empty(self) -> bool:
        return not self.phrase

    @property
    def has_terms(self) -> bool:
        return bool(self.groups)

    @property
    def stems(self) -> FrozenSet[str]:
        """Every stem of every positive clause (used for highlighting and pre-filters)."""
        return frozenset(stem for group in self.groups for clause in group for stem in clause.stems)


def parse_query(raw: Optional[str]) -> ParsedQuery:
    """Parse `raw` into a ParsedQuery. Malformed syntax falls back to plain words."""
    text = raw or ""
    if text.count('"') % 2:
        text = text.replace('"', " ")

    groups: List[List[Clause]] = []
    excluded: List[Clause] = []
    pending_or = False

    for match in _TOKEN_RE.finditer(text):
        quote_sign, quoted, bare = match.groups()

        if quoted is not None:
            negated = quote_sign == "-"
            words = tokenize(quoted)
        else:
            if bare.lower() == "or":
                pending_or = bool(groups)
                continue
            negated = bare.startswith("-")
            words = [word for word in tokenize(bare.lstrip("-")) if not is_stop_word(word)]

        if not words:
            continue

        clause = Clause.of(words)
        if negated:
            excluded.append(clause)
        elif pending_or:
            groups[-1].append(clause)
        else:
            groups.append([clause])
        pending_or = False

    return ParsedQuery(
        raw=raw or "",
        phrase=normalize_phrase(raw or ""),
        groups=tuple(tuple(group) for group in groups),
        excluded=tuple(excluded),
    )
