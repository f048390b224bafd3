"""
Canticle Backend — Chord Transposer
=====================================

What:  Shifts chord symbols in ChordPro content (and bare key labels) by a
       number of semitones while leaving every other byte in place.
How:   Pure string processing: chord roots are mapped to pitch classes
       (0–11), shifted modulo 12, and re-spelled from a fixed table.
Who:   Called by SongService for GET /api/songs/{id}/transpose/{n} and by
       the stateless POST /api/songs/transpose endpoint.

Chord grammar (inside `[` … `]`):
    root     = A–G followed by an optional `#` or `b`
    quality  = anything after the root up to an optional `/`, copied verbatim
    bass     = after `/`, parsed like a root

    "[F#m7/C#]"  →  root "F#", quality "m7", bass "C#"

Best effort:
    Nothing here raises. A bracket whose root does not parse (`[Xyz123]`,
    `[N.C.]`) is emitted unchanged, an unterminated `[` stops chord parsing
    for the rest of the input, and `{...}` directives are copied whole.
    A `{` with no `}` later on the same line is ordinary text.

Spelling:
    Content is always re-spelled with sharps. `transpose_key` takes an
    explicit `prefer_flats` flag because a key label is shown on its own.
"""

import re
from typing import Dict, Optional, Tuple

# Pitch class of every spelling we accept, including the rare enharmonics
PITCH_CLASSES: Dict[str, int] = {
    "C": 0, "B#": 0,
    "C#": 1, "Db": 1,
    "D": 2,
    "D#": 3, "Eb": 3,
    "E": 4, "Fb": 4,
    "F": 5, "E#": 5,
    "F#": 6, "Gb": 6,
    "G": 7,
    "G#": 8, "Ab": 8,
    "A": 9,
    "A#": 10, "Bb": 10,
    "B": 11, "Cb": 11,
}

SHARP_NAMES: Tuple[str, ...] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)
FLAT_NAMES: Tuple[str, ...] = (
    "C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B",
)

_ROOT_RE = re.compile(r"[A-G][#b]?")
_KEY_RE = re.compile(r"([A-G][#b]?)(m?)")


def pitch_class(note: str) -> Optional[int]:
    """Return the pitch class (0–11) of a note name, or None if unrecognized."""
    return PITCH_CLASSES.get(note)


def _shift(note: str, semitones: int, names: Tuple[str, ...]) -> str:
    # Python's % already wraps negative offsets into 0..11
    return names[(PITCH_CLASSES[note] + semitones) % 12]


def _split_root(symbol: str) -> Tuple[Optional[str], str]:
    match = _ROOT_RE.match(symbol)
    if match is None:
        return None, symbol
    return match.group(0), symbol[match.end():]


def transpose_chord(chord: str, semitones: int, prefer_flats: bool = False) -> str:
    """
    Transpose a single chord symbol (without brackets).

    >>> transpose_chord("F#m7/C#", 2)
    'G#m7/D#'
    >>> transpose_chord("N.C.", 5)
    'N.C.'
    """
    names = FLAT_NAMES if prefer_flats else SHARP_NAMES

    root, rest = _split_root(chord)
    if root is None:
        return chord

    quality, slash, bass = rest.partition("/")
    result = _shift(root, semitones, names) + quality
    if slash:
        bass_root, bass_rest = _split_root(bass)
        if bass_root is None:
            result += slash + bass
        else:
            result += slash + _shift(bass_root, semitones, names) + bass_rest
    return result


def transpose_content(content: str, semitones: int) -> str:
    """
    Transpose every `[chord]` in ChordPro content by `semitones`.

    Lyrics, whitespace, line breaks and `{directive}` lines come out
    byte-identical; only the root and bass note inside brackets change.
    A shift of 0 returns the input untouched (no re-spelling).

    >>> transpose_content("[Am]Jesus [C]loves [G]me", 2)
    '[Bm]Jesus [D]loves [A]me'
    """
    if not content or semitones == 0:
        return content

    out = []
    i = 0
    length = len(content)
    while i < length:
        char = content[i]

        if char == "{":
            line_end = content.find("\n", i + 1)
            end = content.find("}", i + 1, length if line_end == -1 else line_end)
            if end == -1:
                # No closing brace on this line: a literal "{" in the lyrics
                out.append(char)
                i += 1
                continue
            out.append(content[i:end + 1])
            i = end + 1
            continue

        if char == "[":
            end = content.find("]", i + 1)
            if end == -1:
                # Unterminated chord: keep the remainder as-is
                out.append(content[i:])
                break
            out.append("[")
            out.append(transpose_chord(content[i + 1:end], semitones))
            out.append("]")
            i = end + 1
            continue

        # Copy the plain run up to the next markup character in one slice
        next_markup = min(
            (pos for pos in (content.find("[", i), content.find("{", i)) if pos != -1),
            default=length,
        )
        out.append(content[i:next_markup])
        i = next_markup

    return "".join(out)


def transpose_key(key: str, semitones: int, prefer_flats: bool = False) -> str:
    """
    Transpose a bare key label such as "C", "Am", "F#" or "Bb".

    The major/minor suffix is preserved and `prefer_flats` picks the
    spelling of the new root. Labels that are not exactly
    root + accidental + optional "m" are returned unchanged.

    >>> transpose_key("Am", 3)
    'Cm'
    >>> transpose_key("F#", 1, prefer_flats=True)
    'G'
    """
    if not key or semitones == 0:
        return key

    match = _KEY_RE.fullmatch(key)
    if match is None:
        return key

    names = FLAT_NAMES if prefer_flats else SHARP_NAMES
    root, minor = match.groups()
    return _shift(root, semitones, names) + minor
