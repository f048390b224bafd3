"""
Canticle Backend — Search Text Normalization
==============================================

What:  Word normalization, tokenization, light stemming and stop words
       shared by ranked search and the word concordance.
How:   Text is split on whitespace; each chunk keeps only its alphanumeric
       characters (Unicode-aware, so Cyrillic survives) and is lowercased.
       "Lord's" → "lords", "long-suffering" → "longsuffering".

Stemming:
    `light_stem` strips one inflectional ending from a fixed list, chosen by
    script (Russian endings for Cyrillic words, English otherwise), and never
    leaves fewer than three characters. The list is enough for
    "loves"/"loved"/"loving" or "света"/"светом" to meet, without a
    dictionary.
"""

from typing import Iterable, List, Tuple

MIN_STEM_LENGTH = 3

# Longest endings first so "-ingly" wins over "-ly"
_ENGLISH_SUFFIXES: Tuple[str, ...] = (
    "ingly", "edly", "ness", "ing", "es", "ed", "ly", "s", "e",
)
_RUSSIAN_SUFFIXES: Tuple[str, ...] = (
    "иями", "ями", "ами", "его", "ого", "ему", "ому", "ыми", "ими",
    "ией", "ость", "ать", "ять", "ить", "еть",
    "ая", "яя", "ое", "ее", "ые", "ие", "ый", "ий", "ой", "ей", "ом", "ем",
    "ах", "ях", "ов", "ев", "ам", "ям", "ью", "ия",
    "а", "я", "о", "е", "ы", "и", "у", "ю", "ь",
)

STOP_WORDS = frozenset({
    # English
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "from",
    "he", "his", "i", "in", "is", "it", "its", "me", "my", "not", "of", "on",
    "or", "so", "that", "the", "their", "them", "then", "there", "they",
    "this", "to", "was", "we", "were", "which", "with", "you", "your",
    # Russian
    "а", "без", "бы", "в", "во", "да", "для", "до", "же", "за", "и", "из",
    "или", "к", "ко", "как", "ли", "на", "не", "ни", "но", "о", "об", "от",
    "по", "при", "с", "со", "так", "то", "у", "что", "это",
})


def normalize_word(chunk: str) -> str:
    """Keep only alphanumeric characters and lowercase the rest."""
    return "".join(char for char in chunk if char.isalnum()).lower()


def tokenize(text: str) -> List[str]:
    """Whitespace-split `text` and normalize each chunk, dropping empties."""
    words = (normalize_word(chunk) for chunk in text.split())
    return [word for word in words if word]


def _is_cyrillic(word: str) -> bool:
    return any("Ѐ" <= char <= "ӿ" for char in word)


def light_stem(word: str) -> str:
    """
    Strip one known ending from an already-normalized word.

    >>> light_stem("loving"), light_stem("loves"), light_stem("is")
    ('lov', 'lov', 'is')
    """
    suffixes = _RUSSIAN_SUFFIXES if _is_cyrillic(word) else _ENGLISH_SUFFIXES
    for suffix in suffixes:
        if word.endswith(suffix) and len(word) - len(suffix) >= MIN_STEM_LENGTH:
            return word[: -len(suffix)]
    return word


def stem_all(words: Iterable[str]) -> List[str]:
    return [light_stem(word) for word in words]


def is_stop_word(word: str) -> bool:
    return word in STOP_WORDS


def normalize_phrase(text: str) -> str:
    """Tokens of `text` joined by single spaces ("Amazing  Grace!" → "amazing grace")."""
    return " ".join(tokenize(text))


def build_search_text(*parts: str) -> str:
    """
    Flatten the searchable fields of a document into one normalized string.

    Stored in a `search_text` column so the database can pre-filter
    candidates with a portable LIKE before ranking happens in Python:
    every stem of every token is a substring of this text.
    """
    return "\n".join(normalize_phrase(part) for part in parts if part)
