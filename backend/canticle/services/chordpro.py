"""
Canticle Backend — ChordPro Text Helpers
==========================================

What:  Derives the plain-text renderings of a song from its ChordPro source.
Who:   SongService, whenever song content is created or updated; the
       results are stored next to the content (content_plain, first_line,
       has_chords) and feed the song's search document.

Markup handled:
    [Chord]        inline chord, removed by strip_chords
    {directive}    section marker / metadata line, skipped by extract_first_line
"""

import re

from canticle.services.transposer import pitch_class

_CHORD_TOKEN_RE = re.compile(r"\[([A-G][#b]?)[^\]]*\]")


def strip_chords(content: str) -> str:
    """
    Remove every `[...]` chord token, brackets included.

    Brackets never nest. An unmatched `[` suppresses everything up to the
    end of the string, so "[C Amazing grace" strips to "".

    >>> strip_chords("[C]Amazing [G]grace")
    'Amazing grace'
    """
    result = []
    in_chord = False
    for char in content:
        if char == "[":
            in_chord = True
        elif char == "]":
            in_chord = False
        elif not in_chord:
            result.append(char)
    return "".join(result)


def extract_first_line(content: str) -> str:
    """First non-blank, non-directive line of the chord-free content, trimmed."""
    for line in strip_chords(content).splitlines():
        if line.strip() and not line.startswith("{"):
            return line.strip()
    return ""


def has_chords(content: str) -> bool:
    """True if the content holds at least one bracketed chord with a valid root."""
    return any(
        pitch_class(match.group(1)) is not None
        for match in _CHORD_TOKEN_RE.finditer(content)
    )
