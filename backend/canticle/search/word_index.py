"""
Canticle Backend — Word Index (Concordance)
=============================================

What:  Builds per-verse word index entries and answers exact-word
       concordance ("symphony") lookups over them.
How:   Words are whitespace-split chunks with every non-alphanumeric
       character removed, lowercased. Chunks shorter than three characters
       are not indexed; positions count indexed words only, from 1.

    "In the beginning God created"  →
        [("the", 1), ("beginning", 2), ("god", 3), ("created", 4)]

Who:   BibleService writes the entries (bible_word_index table) and runs the
       same lookup in SQL; `concordance` is the in-memory form of it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from canticle.search.text import normalize_word

MIN_INDEXED_LENGTH = 3


@dataclass(frozen=True)
class ConcordanceResult:
    word: str
    document_ids: Tuple[Any, ...]
    total_count: int


def index_word(chunk: str) -> str:
    """Normalize a single chunk; returns "" when it is too short to index."""
    word = normalize_word(chunk)
    return word if len(word) >= MIN_INDEXED_LENGTH else ""


def index_words(text: str) -> List[Tuple[str, int]]:
    """Return the (word, position) entries of one verse."""
    entries: List[Tuple[str, int]] = []
    for chunk in text.split():
        word = index_word(chunk)
        if word:
            entries.append((word, len(entries) + 1))
    return entries


def concordance(
    entries: Iterable[Tuple[str, Any]],
    word: str,
    limit: Optional[int] = None,
    sort_key: Optional[Callable[[Any], Any]] = None,
) -> ConcordanceResult:
    """
    Look up `word` in (word, document_id) entries.

    Returns the distinct documents that contain the word, sorted by
    `sort_key` (or the ids themselves), and the number of occurrences.
    `limit` only trims the document list, never the count.
    """
    target = index_word(word)
    occurrences: Dict[Any, int] = {}
    if target:
        for entry_word, document_id in entries:
            if entry_word == target:
                occurrences[document_id] = occurrences.get(document_id, 0) + 1

    document_ids = sorted(occurrences, key=sort_key)
    if limit is not None:
        document_ids = document_ids[: max(0, limit)]
    return ConcordanceResult(
        word=target,
        document_ids=tuple(document_ids),
        total_count=sum(occurrences.values()),
    )
