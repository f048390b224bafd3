# Services package init
"""
Canticle Backend — Services Layer
===================================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - transposer:    Pure chord transposition (content, single chords, key labels)
    - chordpro:      Pure ChordPro helpers (strip chords, first line, has chords)
    - BibleService:  Books, chapters, verses, ranked search, concordance
    - SongService:   Songbooks, songs, categories, tags, search, transposition

Services receive the request's AsyncSession on every call and keep no
per-request state, so the module-level singletons are safe to share.
"""
