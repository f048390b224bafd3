"""
Canticle Backend — Song Route Handlers
========================================

What:  Handles /api/songs: songbooks, listing, search, categories, tags,
       single songs, transposition and create/update/delete.
How:   Extracts path/query parameters, delegates to SongService, returns JSON.

Route order:
    Fixed paths (/songbooks, /search, /categories, /tags, /transpose) are
    registered before /{song_id}; otherwise "search" would be matched as a
    song id and rejected with 422.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from canticle.database import get_db_session
from canticle.models.song import SongCategory
from canticle.schemas.common import ErrorResponse
from canticle.schemas.song import (
    MAX_SEMITONES,
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
from canticle.services.song_service import song_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/songs", tags=["Songs"])

_NOT_FOUND = {404: {"description": "Song not found", "model": ErrorResponse}}


# ══════════════════════════════════════════════════════════════════════════
# Songbooks, categories, tags
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/songbooks",
    response_model=List[SongbookResponse],
    summary="List public songbooks",
)
async def list_songbooks(db: AsyncSession = Depends(get_db_session)) -> List[SongbookResponse]:
    return await song_service.list_songbooks(db=db)


@router.get(
    "/songbooks/{songbook_id}",
    response_model=SongbookResponse,
    responses={404: {"description": "Songbook not found", "model": ErrorResponse}},
    summary="Get one songbook",
)
async def get_songbook(
    songbook_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SongbookResponse:
    return await song_service.get_songbook(db=db, songbook_id=songbook_id)


@router.get(
    "/songbooks/{songbook_id}/editions",
    response_model=List[SongbookEditionResponse],
    responses={404: {"description": "Songbook not found", "model": ErrorResponse}},
    summary="Printed editions of a songbook",
)
async def get_songbook_editions(
    songbook_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> List[SongbookEditionResponse]:
    return await song_service.get_songbook_editions(db=db, songbook_id=songbook_id)


@router.get(
    "/categories",
    response_model=List[CategoryInfo],
    summary="List song categories",
)
async def list_categories() -> List[CategoryInfo]:
    return song_service.list_categories()


@router.get(
    "/categories/{category}",
    response_model=List[SongSummary],
    summary="Most viewed songs of a category",
)
async def list_by_category(
    category: SongCategory,
    limit: Optional[int] = Query(default=None, description="Max results (default 50, ceiling 100)"),
    db: AsyncSession = Depends(get_db_session),
) -> List[SongSummary]:
    return await song_service.list_by_category(db=db, category=category, limit=limit)


@router.get(
    "/tags",
    response_model=List[TagResponse],
    summary="List tags, most used first",
)
async def list_tags(db: AsyncSession = Depends(get_db_session)) -> List[TagResponse]:
    return await song_service.list_tags(db=db)


# ══════════════════════════════════════════════════════════════════════════
# Listing and search
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=List[SongSummary],
    summary="List songs",
    description="Filter by songbook, category, tag or key; sort and paginate with limit/offset.",
)
async def list_songs(
    songbook_id: Optional[UUID] = Query(default=None),
    category: Optional[SongCategory] = Query(default=None),
    tag_id: Optional[UUID] = Query(default=None),
    key: Optional[str] = Query(default=None, max_length=8, description="Original key, e.g. 'Am'"),
    limit: Optional[int] = Query(default=None, description="Max results (default 50, ceiling 100)"),
    offset: int = Query(default=0, ge=0),
    sort_by: SongSortBy = Query(default=SongSortBy.TITLE),
    db: AsyncSession = Depends(get_db_session),
) -> List[SongSummary]:
    return await song_service.list_songs(
        db=db,
        songbook_id=songbook_id,
        category=category,
        tag_id=tag_id,
        key=key,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
    )


@router.get(
    "/search",
    response_model=List[SongSearchResult],
    summary="Ranked search over songs",
    description=(
        "Searches title, first line, lyrics and lyricist with web-search syntax. "
        "Songs whose title starts with the query come first. An empty query or "
        "no match returns an empty list."
    ),
)
async def search_songs(
    response: Response,
    q: str = Query(default="", max_length=500, description="Search query"),
    limit: Optional[int] = Query(default=None, description="Max results (default 50, ceiling 100)"),
    songbook_id: Optional[UUID] = Query(default=None),
    category: Optional[SongCategory] = Query(default=None),
    tag_id: Optional[UUID] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> List[SongSearchResult]:
    result = await song_service.search(
        db=db,
        query=q,
        limit=limit,
        songbook_id=songbook_id,
        category=category,
        tag_id=tag_id,
    )
    response.headers["Cache-Control"] = "public, max-age=60"
    return result


@router.post(
    "/transpose",
    response_model=TransposeResponse,
    summary="Transpose ChordPro content",
    description=(
        "Shifts every [chord] by the given number of semitones (sharp spelling). "
        "An optional key label is shifted too, with flats when prefer_flats is set."
    ),
)
async def transpose(body: TransposeRequest) -> TransposeResponse:
    return song_service.transpose(body)


# ══════════════════════════════════════════════════════════════════════════
# Single song
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    response_model=SongResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Unknown songbook or tag", "model": ErrorResponse}},
    summary="Create a song",
)
async def create_song(
    body: SongCreateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SongResponse:
    return await song_service.create_song(db=db, request=body)


@router.get(
    "/{song_id}",
    response_model=SongResponse,
    responses=_NOT_FOUND,
    summary="Get a song",
    description="Returns the full song including its ChordPro content and counts the view.",
)
async def get_song(
    song_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SongResponse:
    return await song_service.get_song(db=db, song_id=song_id)


@router.get(
    "/{song_id}/transpose/{semitones}",
    response_model=TransposedSongResponse,
    responses=_NOT_FOUND,
    summary="Get a song transposed",
    description="Content and original_key shifted by -12..12 semitones; the stored song is unchanged.",
)
async def get_song_transposed(
    song_id: UUID,
    semitones: int = Path(ge=-MAX_SEMITONES, le=MAX_SEMITONES),
    db: AsyncSession = Depends(get_db_session),
) -> TransposedSongResponse:
    return await song_service.get_song_transposed(db=db, song_id=song_id, semitones=semitones)


@router.put(
    "/{song_id}",
    response_model=SongResponse,
    responses={**_NOT_FOUND, 400: {"description": "Unknown songbook or tag", "model": ErrorResponse}},
    summary="Update a song",
)
async def update_song(
    song_id: UUID,
    body: SongUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SongResponse:
    return await song_service.update_song(db=db, song_id=song_id, request=body)


@router.delete(
    "/{song_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Delete a song",
)
async def delete_song(
    song_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await song_service.delete_song(db=db, song_id=song_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
