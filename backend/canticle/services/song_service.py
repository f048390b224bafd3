"""
Canticle Backend — Song Service
=================================

What:  Business logic for songbooks, songs, categories and tags: listing,
       ranked search, transposition and create/update/delete.
Who:   Called by the /api/songs route handlers.

Derived fields:
    A client only ever writes a song's ChordPro `content` (and its
    descriptive fields). Every write recomputes, in the same flush:

        content_plain  ← strip_chords(content)
        first_line     ← extract_first_line(content)
        has_chords     ← has_chords(content)
        search_text    ← normalized title + first line + plain content + lyricist

Search (GET /api/songs/search):
    Candidates are pre-filtered in SQL on `search_text` (term stems, or the
    whole normalized query as a substring), then ranked in Python with the
    weights title 1.0, first_line 0.4, content 0.2, author 0.1. Songs whose
    title starts with the query always come first.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import and_, case, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canticle.config import settings
from canticle.exceptions import CanticleError, DatabaseError, NotFoundError, ValidationError
from canticle.models.song import (
    Song,
    Songbook,
    SongbookEdition,
    SongCategory,
    SongCategoryLink,
    SongTag,
    song_tag_assignments,
)
from canticle.schemas.song import (
    CategoryInfo,
    SongbookEditionResponse,
    SongbookResponse,
    SongCreateRequest,
    SongResponse,
    SongSearchResult,
    SongSortBy,
    SongSummary,
    SongUpdateRequest,
    TagResponse,
    TransposedSongResponse,
    TransposeRequest,
    TransposeResponse,
)
from canticle.search import SONG_WEIGHTS, SearchDocument, SearchRanker, build_search_text, clamp_limit, parse_query
from canticle.services.chordpro import extract_first_line, has_chords, strip_chords
from canticle.services.transposer import transpose_content, transpose_key

logger = logging.getLogger(__name__)

# Plain columns a client may set on create/update
_DESCRIPTIVE_FIELDS = (
    "songbook_id",
    "number",
    "title",
    "title_alt",
    "author_lyrics",
    "author_music",
    "translator",
    "year_written",
    "copyright",
    "original_key",
    "tempo",
    "time_signature",
    "content",
)

# Columns a PUT may not clear by sending null
_REQUIRED_FIELDS = frozenset({"title", "content"})

_SORT_ORDERS = {
    SongSortBy.TITLE: (Song.title.asc(),),
    SongSortBy.NUMBER: (Song.number.is_(None), Song.number.asc(), Song.title.asc()),
    SongSortBy.VIEWS_DESC: (Song.views_count.desc(), Song.title.asc()),
    SongSortBy.FAVORITES_DESC: (Song.favorites_count.desc(), Song.title.asc()),
    SongSortBy.RECENTLY_ADDED: (Song.created_at.desc(),),
    SongSortBy.HAS_CHORDS_FIRST: (Song.has_chords.desc(), Song.title.asc()),
    SongSortBy.NO_CHORDS_FIRST: (Song.has_chords.asc(), Song.title.asc()),
}


def apply_derived_fields(song: Song) -> None:
    """Recompute every column derived from the song's content and title."""
    song.content_plain = strip_chords(song.content)
    song.first_line = extract_first_line(song.content)
    song.has_chords = has_chords(song.content)
    song.search_text = build_search_text(
        song.title,
        song.first_line,
        song.content_plain,
        song.author_lyrics or "",
    )


def _song_document(song: Song) -> SearchDocument:
    return SearchDocument(
        ref=song,
        fields={
            "title": song.title,
            "first_line": song.first_line,
            "content": song.content_plain,
            "author": song.author_lyrics,
        },
        title=song.title,
        popularity=song.views_count,
        snippet_source=song.content_plain,
    )


class SongService:
    """
    Business logic layer for song operations.

    Error Handling Strategy:
        Unknown ids raise NotFoundError (404); references to unknown
        songbooks or tags in a request body raise ValidationError (400).
        Our own exceptions propagate as-is; anything else is logged and
        wrapped in DatabaseError.
    """

    def __init__(self):
        self.ranker = SearchRanker(
            weights=SONG_WEIGHTS,
            max_limit=settings.search_max_limit,
            substring_fields=("title", "first_line"),
            headline_max_words=settings.headline_max_words,
            headline_min_words=settings.headline_min_words,
        )

    # ── Songbooks ─────────────────────────────────────────────────────────

    async def list_songbooks(self, db: AsyncSession) -> List[SongbookResponse]:
        """Public songbooks ordered by Russian name, with song counts."""
        try:
            result = await db.execute(
                select(Songbook).where(Songbook.is_public.is_(True)).order_by(Songbook.name_ru)
            )
            songbooks = result.scalars().all()
            counts = await self._songbook_counts(db)
        except Exception as e:
            logger.error("Database error listing songbooks: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve songbooks. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [self._songbook_response(songbook, counts) for songbook in songbooks]

    async def get_songbook(self, db: AsyncSession, songbook_id: uuid.UUID) -> SongbookResponse:
        try:
            songbook = await db.get(Songbook, songbook_id)
            counts = await self._songbook_counts(db, songbook_id) if songbook is not None else {}
        except Exception as e:
            logger.error("Database error fetching songbook %s: %s", songbook_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the songbook. Please try again.",
                context={"songbook_id": str(songbook_id)},
            ) from e

        if songbook is None:
            raise NotFoundError(resource="songbook", resource_id=str(songbook_id))
        return self._songbook_response(songbook, counts)

    async def get_songbook_editions(
        self,
        db: AsyncSession,
        songbook_id: uuid.UUID,
    ) -> List[SongbookEditionResponse]:
        """Printed editions of a songbook, newest first; undated ones last."""
        try:
            songbook = await db.get(Songbook, songbook_id)
            editions = []
            if songbook is not None:
                result = await db.execute(
                    select(SongbookEdition)
                    .where(SongbookEdition.songbook_id == songbook_id)
                    .order_by(SongbookEdition.year_published.desc().nulls_last(), SongbookEdition.edition_name)
                )
                editions = result.scalars().all()
        except Exception as e:
            logger.error("Database error listing editions of songbook %s: %s", songbook_id, str(e))
            raise DatabaseError(
                message="Could not retrieve songbook editions. Please try again.",
                context={"songbook_id": str(songbook_id)},
            ) from e

        if songbook is None:
            raise NotFoundError(resource="songbook", resource_id=str(songbook_id))
        return [SongbookEditionResponse.model_validate(edition) for edition in editions]

    # ── Listing ───────────────────────────────────────────────────────────

    async def list_songs(
        self,
        db: AsyncSession,
        songbook_id: Optional[uuid.UUID] = None,
        category: Optional[SongCategory] = None,
        tag_id: Optional[uuid.UUID] = None,
        key: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        sort_by: SongSortBy = SongSortBy.TITLE,
    ) -> List[SongSummary]:
        """Filtered, sorted page of song summaries."""
        limit = clamp_limit(limit, settings.search_max_limit, default=settings.search_default_limit)
        try:
            query = self._filtered(select(Song), songbook_id, category, tag_id)
            if key:
                query = query.where(Song.original_key == key)
            query = (
                query.order_by(*_SORT_ORDERS[sort_by])
                .offset(max(0, offset))
                .limit(limit)
                .execution_options(populate_existing=True)
            )

            result = await db.execute(query)
            return [SongSummary.model_validate(song) for song in result.scalars().all()]
        except Exception as e:
            logger.error("Database error listing songs: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve songs. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    def list_categories(self) -> List[CategoryInfo]:
        return [CategoryInfo(category=category, name_ru=category.name_ru) for category in SongCategory]

    async def list_by_category(
        self,
        db: AsyncSession,
        category: SongCategory,
        limit: Optional[int] = None,
    ) -> List[SongSummary]:
        """Most viewed songs of one category."""
        return await self.list_songs(db, category=category, limit=limit, sort_by=SongSortBy.VIEWS_DESC)

    async def list_tags(self, db: AsyncSession) -> List[TagResponse]:
        try:
            result = await db.execute(
                select(SongTag).order_by(SongTag.usage_count.desc(), SongTag.name_ru)
            )
            return [TagResponse.model_validate(tag) for tag in result.scalars().all()]
        except Exception as e:
            logger.error("Database error listing tags: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve tags. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    # ── Search ────────────────────────────────────────────────────────────

    async def search(
        self,
        db: AsyncSession,
        query: str,
        limit: Optional[int] = None,
        songbook_id: Optional[uuid.UUID] = None,
        category: Optional[SongCategory] = None,
        tag_id: Optional[uuid.UUID] = None,
    ) -> List[SongSearchResult]:
        """
        Ranked search over title, first line, lyrics and lyricist.

        Empty queries and queries without matches return [].
        """
        limit = clamp_limit(limit, settings.search_max_limit, default=settings.search_default_limit)
        parsed = parse_query(query)
        if parsed.is_empty or limit == 0:
            return []

        prefilters = [Song.search_text.contains(parsed.phrase, autoescape=True)]
        if parsed.has_terms:
            prefilters.append(and_(*(
                or_(*(
                    and_(*(Song.search_text.contains(stem, autoescape=True) for stem in clause.stems))
                    for clause in group
                ))
                for group in parsed.groups
            )))

        try:
            candidates = self._filtered(select(Song), songbook_id, category, tag_id)
            candidates = (
                candidates.where(or_(*prefilters))
                .order_by(Song.title, Song.id)
                .execution_options(populate_existing=True)
            )
            result = await db.execute(candidates)
            songs = result.scalars().all()
        except Exception as e:
            logger.error("Database error searching songs for %r: %s", query, str(e), exc_info=True)
            raise DatabaseError(
                message="Search failed. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        hits = self.ranker.rank(parsed, (_song_document(song) for song in songs), limit)
        logger.debug("Song search %r: %d candidates, %d hits", query, len(songs), len(hits))
        return [
            SongSearchResult(
                song=SongSummary.model_validate(hit.document.ref),
                songbook_name=hit.document.ref.songbook.name_ru if hit.document.ref.songbook else None,
                highlight=hit.highlight,
                rank=hit.score,
            )
            for hit in hits
        ]

    # ── Single song ───────────────────────────────────────────────────────

    async def get_song(self, db: AsyncSession, song_id: uuid.UUID) -> SongResponse:
        """Fetch a song and count the view."""
        try:
            await db.execute(
                update(Song)
                .where(Song.id == song_id)
                .values(views_count=Song.views_count + 1, updated_at=Song.updated_at)
                .execution_options(synchronize_session=False)
            )
            song = await self._load_song(db, song_id)
            return SongResponse.model_validate(song)
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error fetching song %s: %s", song_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the song. Please try again.",
                context={"song_id": str(song_id)},
            ) from e

    async def get_song_transposed(
        self,
        db: AsyncSession,
        song_id: uuid.UUID,
        semitones: int,
    ) -> TransposedSongResponse:
        """
        The song with its content shifted by `semitones` (sharp spelling)
        and its original_key shifted along. Nothing is written back.
        """
        try:
            song = await self._load_song(db, song_id)
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error fetching song %s: %s", song_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the song. Please try again.",
                context={"song_id": str(song_id)},
            ) from e

        data = SongResponse.model_validate(song).model_dump()
        data.update(
            content=transpose_content(song.content, semitones),
            original_key=transpose_key(song.original_key, semitones) if song.original_key else None,
            semitones=semitones,
        )
        return TransposedSongResponse(**data)

    def transpose(self, request: TransposeRequest) -> TransposeResponse:
        """Stateless transposition of arbitrary content (and optionally a key)."""
        return TransposeResponse(
            content=transpose_content(request.content, request.semitones),
            semitones=request.semitones,
            key=transpose_key(request.key, request.semitones, request.prefer_flats) if request.key else None,
        )

    # ── Writing ───────────────────────────────────────────────────────────

    async def create_song(self, db: AsyncSession, request: SongCreateRequest) -> SongResponse:
        """
        Create a song with its categories and tags.

        Raises:
            ValidationError: Unknown songbook_id or tag id
        """
        try:
            if request.songbook_id is not None:
                await self._require_songbook(db, request.songbook_id)
            tags = await self._resolve_tags(db, request.tag_ids)

            song = Song(**{name: getattr(request, name) for name in _DESCRIPTIVE_FIELDS})
            apply_derived_fields(song)
            song.category_links = [
                SongCategoryLink(category=category.value)
                for category in dict.fromkeys(request.categories)
            ]
            song.tags = tags
            for tag in tags:
                tag.usage_count += 1

            db.add(song)
            await db.flush()
            logger.info("Song created: %s (%r, has_chords=%s)", song.id, song.title, song.has_chords)

            return SongResponse.model_validate(await self._load_song(db, song.id))
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error creating song: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the song. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def update_song(
        self,
        db: AsyncSession,
        song_id: uuid.UUID,
        request: SongUpdateRequest,
    ) -> SongResponse:
        """
        Apply a partial update; derived fields are recomputed in the same flush.

        Raises:
            NotFoundError: Unknown song
            ValidationError: Unknown songbook_id or tag id
        """
        try:
            song = await self._load_song(db, song_id)
            changes = {
                name: value
                for name, value in request.model_dump(
                    exclude_unset=True, include=set(_DESCRIPTIVE_FIELDS)
                ).items()
                if value is not None or name not in _REQUIRED_FIELDS
            }
            if changes.get("songbook_id") is not None:
                await self._require_songbook(db, changes["songbook_id"])

            for name, value in changes.items():
                setattr(song, name, value)
            apply_derived_fields(song)

            if request.categories is not None:
                self._replace_categories(song, request.categories)
            if request.tag_ids is not None:
                self._replace_tags(song, await self._resolve_tags(db, request.tag_ids))

            await db.flush()
            logger.info("Song updated: %s (fields: %s)", song_id, sorted(changes))
            return SongResponse.model_validate(await self._load_song(db, song_id))
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error updating song %s: %s", song_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the song. Please try again.",
                context={"song_id": str(song_id)},
            ) from e

    async def delete_song(self, db: AsyncSession, song_id: uuid.UUID) -> None:
        try:
            song = await self._load_song(db, song_id)
            for tag in song.tags:
                tag.usage_count = max(0, tag.usage_count - 1)
            await db.delete(song)
            await db.flush()
            logger.info("Song deleted: %s", song_id)
        except CanticleError:
            raise
        except Exception as e:
            logger.error("Database error deleting song %s: %s", song_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the song. Please try again.",
                context={"song_id": str(song_id)},
            ) from e

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _filtered(query, songbook_id, category, tag_id):
        if songbook_id is not None:
            query = query.where(Song.songbook_id == songbook_id)
        if category is not None:
            query = query.where(
                exists().where(
                    SongCategoryLink.song_id == Song.id,
                    SongCategoryLink.category == category.value,
                )
            )
        if tag_id is not None:
            query = query.where(
                exists().where(
                    song_tag_assignments.c.song_id == Song.id,
                    song_tag_assignments.c.tag_id == tag_id,
                )
            )
        return query

    @staticmethod
    async def _load_song(db: AsyncSession, song_id: uuid.UUID) -> Song:
        # populate_existing refreshes an object already in the session,
        # relationships included, without a lazy load
        result = await db.execute(
            select(Song).where(Song.id == song_id).execution_options(populate_existing=True)
        )
        song = result.scalar_one_or_none()
        if song is None:
            raise NotFoundError(resource="song", resource_id=str(song_id))
        return song

    @staticmethod
    async def _require_songbook(db: AsyncSession, songbook_id: uuid.UUID) -> Songbook:
        songbook = await db.get(Songbook, songbook_id)
        if songbook is None:
            raise ValidationError(
                message=f"Songbook '{songbook_id}' does not exist",
                field="songbook_id",
            )
        return songbook

    @staticmethod
    async def _resolve_tags(db: AsyncSession, tag_ids: Sequence[uuid.UUID]) -> List[SongTag]:
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        result = await db.execute(select(SongTag).where(SongTag.id.in_(wanted)))
        found = {tag.id: tag for tag in result.scalars().all()}
        missing = [str(tag_id) for tag_id in wanted if tag_id not in found]
        if missing:
            raise ValidationError(
                message=f"Unknown tag id(s): {', '.join(missing)}",
                field="tag_ids",
                context={"missing": missing},
            )
        return [found[tag_id] for tag_id in wanted]

    @staticmethod
    def _replace_categories(song: Song, categories: Iterable[SongCategory]) -> None:
        # Diff instead of clearing: re-inserting an identical (song_id, category)
        # key in the same flush as its delete would collide
        wanted = {category.value for category in categories}
        song.category_links = [link for link in song.category_links if link.category in wanted]
        present = {link.category for link in song.category_links}
        for value in sorted(wanted - present):
            song.category_links.append(SongCategoryLink(category=value))

    @staticmethod
    def _replace_tags(song: Song, tags: List[SongTag]) -> None:
        current = {tag.id for tag in song.tags}
        wanted = {tag.id for tag in tags}
        for tag in song.tags:
            if tag.id not in wanted:
                tag.usage_count = max(0, tag.usage_count - 1)
        for tag in tags:
            if tag.id not in current:
                tag.usage_count += 1
        song.tags = tags

    @staticmethod
    async def _songbook_counts(db: AsyncSession, songbook_id: Optional[uuid.UUID] = None) -> dict:
        query = select(
            Song.songbook_id,
            func.count(Song.id),
            func.sum(case((Song.has_chords.is_(True), 1), else_=0)),
        ).where(Song.songbook_id.is_not(None))
        if songbook_id is not None:
            query = query.where(Song.songbook_id == songbook_id)
        result = await db.execute(query.group_by(Song.songbook_id))
        return {row[0]: (row[1], row[2] or 0) for row in result.all()}

    @staticmethod
    def _songbook_response(songbook: Songbook, counts: dict) -> SongbookResponse:
        songs_count, with_chords = counts.get(songbook.id, (0, 0))
        response = SongbookResponse.model_validate(songbook)
        return response.model_copy(update={
            "songs_count": songs_count,
            "songs_with_chords_count": with_chords,
        })


# ── Singleton Instance ────────────────────────────────────────────────────
song_service = SongService()
