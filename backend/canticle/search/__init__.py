"""
Canticle Backend — Search Package
===================================

Pure text search used by the Bible and song services:

    text.py        → normalization, tokenization, light stemming, stop words
    query.py       → web-search style query parsing
    ranker.py      → weighted multi-field scoring, ordering, highlighting
    word_index.py  → word index entries and concordance lookups
"""

from canticle.search.query import ParsedQuery, parse_query
from canticle.search.ranker import (
    SONG_WEIGHTS,
    VERSE_WEIGHTS,
    SearchDocument,
    SearchHit,
    SearchRanker,
    clamp_limit,
    highlight,
)
from canticle.search.text import build_search_text, light_stem, normalize_phrase, normalize_word, tokenize
from canticle.search.word_index import ConcordanceResult, concordance, index_word, index_words

__all__ = [
    "ConcordanceResult",
    "ParsedQuery",
    "SONG_WEIGHTS",
    "SearchDocument",
    "SearchHit",
    "SearchRanker",
    "VERSE_WEIGHTS",
    "build_search_text",
    "clamp_limit",
    "concordance",
    "highlight",
    "index_word",
    "index_words",
    "light_stem",
    "normalize_phrase",
    "normalize_word",
    "parse_query",
    "tokenize",
]
