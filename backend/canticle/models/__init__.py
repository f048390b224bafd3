"""ORM models. Importing this package registers every table on Base.metadata."""

from canticle.models.bible import (
    BibleBook,
    BiblePericope,
    BibleVerse,
    BibleWordIndex,
    DailyReading,
    DailyReadingVerse,
    Testament,
)
from canticle.models.song import (
    Song,
    Songbook,
    SongbookEdition,
    SongCategory,
    SongCategoryLink,
    SongTag,
    song_tag_assignments,
)

__all__ = [
    "BibleBook",
    "BiblePericope",
    "BibleVerse",
    "BibleWordIndex",
    "DailyReading",
    "DailyReadingVerse",
    "Song",
    "SongCategory",
    "SongCategoryLink",
    "SongTag",
    "Songbook",
    "SongbookEdition",
    "Testament",
    "song_tag_assignments",
]
