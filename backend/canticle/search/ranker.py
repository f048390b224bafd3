"""
Canticle Backend — Ranked Free-Text Search
============================================

What:  Scores candidate documents against a parsed query, orders them and
       builds a highlighted snippet for each hit.
How:   Pure Python over documents the services have already pre-filtered
       in the database (see `search_text`). Nothing here touches I/O.
Who:   BibleService.search and SongService.search.

Scoring:
    score = Σ over fields of  weight × matches / (1 + ln(1 + tokens))

    A field's `matches` counts every position where a positive clause
    matches (a phrase counts once per consecutive occurrence). Long fields
    are damped by the log of their token count, so one hit in a title beats
    one hit buried in a long lyric.

Ordering:
    1. Title-prefix matches (normalized title starts with the normalized query)
    2. Score, descending
    3. Popularity, descending
    4. Input order, so equal documents come back in a stable order
"""

import math
from dataclasses import dataclass
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from canticle.search.query import Clause, ParsedQuery, parse_query
from canticle.search.text import light_stem, normalize_phrase, normalize_word, stem_all, tokenize

MARK_START = "<mark>"
MARK_STOP = "</mark>"


@dataclass
class SearchDocument:
    """
    One candidate for ranking.

    Attributes:
        ref:             Whatever the caller wants back (an ORM row, an id)
        fields:          Field name → raw text, scored with the ranker's weights
        title:           Text checked for the title-prefix promotion ("" = never promoted)
        popularity:      Tie-breaker after score (views for songs)
        snippet_source:  Text the highlight is cut from
    """

    ref: Any
    fields: Mapping[str, Optional[str]]
    title: str = ""
    popularity: int = 0
    snippet_source: str = ""


@dataclass
class SearchHit:
    document: SearchDocument
    score: float
    title_match: bool
    highlight: str = ""


def clamp_limit(limit: Optional[int], ceiling: int, default: Optional[int] = None) -> int:
    """Clamp a requested result count into [0, ceiling]."""
    if limit is None:
        limit = ceiling if default is None else default
    return max(0, min(limit, ceiling))


def _count_clause(clause: Clause, stems: Sequence[str]) -> int:
    width = len(clause.stems)
    if width == 1:
        return sum(1 for stem in stems if stem == clause.stems[0])
    return sum(
        1
        for start in range(len(stems) - width + 1)
        if tuple(stems[start:start + width]) == clause.stems
    )


def _mark(chunk: str) -> str:
    # Wrap the alphanumeric core so punctuation stays outside the tag
    positions = [index for index, char in enumerate(chunk) if char.isalnum()]
    if not positions:
        return chunk
    first, last = positions[0], positions[-1] + 1
    return f"{chunk[:first]}{MARK_START}{chunk[first:last]}{MARK_STOP}{chunk[last:]}"


def highlight(
    text: str,
    terms: Union[ParsedQuery, Collection[str]],
    max_words: int = 30,
    min_words: int = 15,
) -> str:
    """
    Cut a snippet of at most `max_words` words around the densest run of
    matches and wrap each matched word in <mark> tags.

    `terms` is a parsed query or a collection of stems. Without any match
    the first `min_words` words are returned as they are.

    >>> highlight("Amazing grace how sweet the sound", {"grac"})
    'Amazing <mark>grace</mark> how sweet the sound'
    """
    stems = terms.stems if isinstance(terms, ParsedQuery) else frozenset(terms)
    chunks = text.split()
    if not chunks:
        return ""

    flags = [light_stem(normalize_word(chunk)) in stems for chunk in chunks]
    if not any(flags):
        return " ".join(chunks[:min_words])

    window = max(1, min(max_words, len(chunks)))
    running = sum(flags[:window])
    best, best_start = running, 0
    for start in range(1, len(chunks) - window + 1):
        running += flags[start + window - 1] - flags[start - 1]
        if running > best:
            best, best_start = running, start

    # Centre the matched run inside the window where there is room
    matched = [index for index in range(best_start, best_start + window) if flags[index]]
    slack = window - (matched[-1] - matched[0] + 1)
    start = max(0, min(matched[0] - slack // 2, len(chunks) - window))

    return " ".join(
        _mark(chunk) if flag else chunk
        for chunk, flag in zip(chunks[start:start + window], flags[start:start + window])
    )


class SearchRanker:
    """
    Ranks documents for one kind of search.

    Args:
        weights:           Field name → weight; fields without a weight are ignored
        max_limit:         Hard ceiling on returned hits
        substring_fields:  Fields where a plain substring match of the whole
                           normalized query also qualifies a document
        headline_max_words / headline_min_words:  Snippet sizes
    """

    def __init__(
        self,
        weights: Mapping[str, float],
        max_limit: int = 100,
        substring_fields: Tuple[str, ...] = (),
        headline_max_words: int = 30,
        headline_min_words: int = 15,
    ):
        self.weights = dict(weights)
        self.max_limit = max_limit
        self.substring_fields = substring_fields
        self.headline_max_words = headline_max_words
        self.headline_min_words = headline_min_words

    def rank(
        self,
        query: Union[str, ParsedQuery],
        documents: Iterable[SearchDocument],
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        """Return up to `limit` hits, best first. Never raises on odd input."""
        parsed = parse_query(query) if isinstance(query, str) else query
        limit = clamp_limit(limit, self.max_limit)
        if parsed.is_empty or limit == 0:
            return []

        candidates: List[Tuple[int, SearchHit]] = []
        for order, document in enumerate(documents):
            hit = self._evaluate(parsed, document)
            if hit is not None:
                candidates.append((order, hit))

        candidates.sort(
            key=lambda item: (
                not item[1].title_match,
                -item[1].score,
                -item[1].document.popularity,
                item[0],
            )
        )

        hits = [hit for _, hit in candidates[:limit]]
        for hit in hits:
            hit.highlight = highlight(
                hit.document.snippet_source,
                parsed,
                max_words=self.headline_max_words,
                min_words=self.headline_min_words,
            )
        return hits

    def _evaluate(self, parsed: ParsedQuery, document: SearchDocument) -> Optional[SearchHit]:
        analyzed: Dict[str, List[str]] = {
            name: stem_all(tokenize(text))
            for name, text in document.fields.items()
            if text and name in self.weights
        }

        for clause in parsed.excluded:
            if any(_count_clause(clause, stems) for stems in analyzed.values()):
                return None

        score = 0.0
        satisfied = set()
        for group_index, group in enumerate(parsed.groups):
            for clause in group:
                for name, stems in analyzed.items():
                    matches = _count_clause(clause, stems)
                    if matches:
                        satisfied.add(group_index)
                        score += self.weights[name] * matches / (1 + math.log1p(len(stems)))

        text_match = parsed.has_terms and len(satisfied) == len(parsed.groups)
        substring_match = any(
            parsed.phrase in normalize_phrase(document.fields.get(name) or "")
            for name in self.substring_fields
        )
        if not (text_match or substring_match):
            return None

        title_match = bool(document.title) and normalize_phrase(document.title).startswith(parsed.phrase)
        return SearchHit(document=document, score=round(score, 6), title_match=title_match)


# Preconfigured field weights
SONG_WEIGHTS: Dict[str, float] = {
    "title": 1.0,
    "first_line": 0.4,
    "content": 0.2,
    "author": 0.1,
}
VERSE_WEIGHTS: Dict[str, float] = {"text": 1.0}
