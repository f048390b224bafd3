"""
Canticle Backend — Bible Route Handlers
=========================================

What:  Handles /api/bible: books, chapters, verses, section headings, ranked
       search, the word concordance ("symphony"), the daily reading plan and
       verse text updates.
How:   Extracts path/query parameters, delegates to BibleService, returns JSON.

Caching Strategy:
    Bible text changes only through PUT /api/bible/verses/{id}, so reads get
    a long public cache; search results a short one.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from canticle.database import get_db_session
from canticle.models.bible import Testament
from canticle.schemas.bible import (
    BookResponse,
    ChapterInfoResponse,
    DailyReadingResponse,
    PericopeResponse,
    SymphonyResponse,
    VerseResponse,
    VerseSearchResult,
    VerseUpdateRequest,
)
from canticle.schemas.common import ErrorResponse
from canticle.services.bible_service import bible_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/bible", tags=["Bible"])

_TEXT_CACHE = "public, max-age=3600"
_SEARCH_CACHE = "public, max-age=60"


@router.get(
    "/books",
    response_model=List[BookResponse],
    summary="List Bible books",
    description="Books in canonical order, optionally filtered by testament (old or new).",
)
async def list_books(
    response: Response,
    testament: Optional[Testament] = Query(default=None, description="old | new"),
    db: AsyncSession = Depends(get_db_session),
) -> List[BookResponse]:
    response.headers["Cache-Control"] = _TEXT_CACHE
    return await bible_service.list_books(db=db, testament=testament)


@router.get(
    "/books/{book_id}",
    response_model=BookResponse,
    responses={404: {"description": "Book not found", "model": ErrorResponse}},
    summary="Get one book",
)
async def get_book(
    book_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> BookResponse:
    return await bible_service.get_book(db=db, book_id=book_id)


@router.get(
    "/books/{book_id}/chapters-info",
    response_model=List[ChapterInfoResponse],
    responses={404: {"description": "Book not found", "model": ErrorResponse}},
    summary="Verse count of every chapter of a book",
)
async def get_chapters_info(
    book_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> List[ChapterInfoResponse]:
    return await bible_service.get_chapters_info(db=db, book_id=book_id)


@router.get(
    "/books/{book_id}/pericopes",
    response_model=List[PericopeResponse],
    responses={404: {"description": "Book not found", "model": ErrorResponse}},
    summary="Section headings of a book",
)
async def get_pericopes(
    response: Response,
    book_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> List[PericopeResponse]:
    result = await bible_service.get_pericopes(db=db, book_id=book_id)
    response.headers["Cache-Control"] = _TEXT_CACHE
    return result


@router.get(
    "/books/{book_id}/chapters/{chapter}",
    response_model=List[VerseResponse],
    responses={404: {"description": "Book or chapter not found", "model": ErrorResponse}},
    summary="Get the verses of a chapter",
    description="All verses of the chapter in order, or only verses start..end when given.",
)
async def get_chapter(
    response: Response,
    book_id: int = Path(ge=1),
    chapter: int = Path(ge=1),
    start: Optional[int] = Query(default=None, ge=1, description="First verse (inclusive)"),
    end: Optional[int] = Query(default=None, ge=1, description="Last verse (inclusive)"),
    db: AsyncSession = Depends(get_db_session),
) -> List[VerseResponse]:
    result = await bible_service.get_chapter(db=db, book_id=book_id, chapter=chapter, start=start, end=end)
    response.headers["Cache-Control"] = _TEXT_CACHE
    return result


@router.get(
    "/books/{book_id}/chapters/{chapter}/verses/{verse}",
    response_model=VerseResponse,
    responses={404: {"description": "Verse not found", "model": ErrorResponse}},
    summary="Get a single verse",
)
async def get_verse(
    response: Response,
    book_id: int = Path(ge=1),
    chapter: int = Path(ge=1),
    verse: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> VerseResponse:
    result = await bible_service.get_verse(db=db, book_id=book_id, chapter=chapter, verse=verse)
    response.headers["Cache-Control"] = _TEXT_CACHE
    return result


@router.get(
    "/search",
    response_model=List[VerseSearchResult],
    summary="Ranked full-text search over verses",
    description=(
        "Web-search style query: bare words are ANDed, \"quoted phrases\" match "
        "consecutive words, `or` gives alternatives and -word excludes. "
        "Results are ranked by relevance and carry a <mark>-highlighted snippet. "
        "An empty query or no match returns an empty list."
    ),
)
async def search_verses(
    response: Response,
    q: str = Query(default="", max_length=500, description="Search query"),
    limit: Optional[int] = Query(default=None, description="Max results (default 50, ceiling 100)"),
    book_id: Optional[int] = Query(default=None, ge=1, description="Only search this book"),
    chapter: Optional[int] = Query(default=None, ge=1, description="Only search this chapter (needs book_id)"),
    db: AsyncSession = Depends(get_db_session),
) -> List[VerseSearchResult]:
    result = await bible_service.search(db=db, query=q, limit=limit, book_id=book_id, chapter=chapter)
    response.headers["Cache-Control"] = _SEARCH_CACHE
    return result


@router.get(
    "/symphony/{word}",
    response_model=SymphonyResponse,
    summary="Concordance of an exact word",
    description=(
        "Every verse containing the word (case and punctuation ignored), once "
        "each, in canonical order. total_count is the number of occurrences."
    ),
)
async def symphony(
    word: str = Path(max_length=100),
    limit: Optional[int] = Query(default=None, description="Max verses (default 100)"),
    db: AsyncSession = Depends(get_db_session),
) -> SymphonyResponse:
    return await bible_service.symphony(db=db, word=word, limit=limit)


@router.get(
    "/today",
    response_model=DailyReadingResponse,
    responses={404: {"description": "Nothing planned for today", "model": ErrorResponse}},
    summary="Today's reading",
    description="The reading plan entry for the current day of the year (UTC).",
)
async def get_today_reading(
    db: AsyncSession = Depends(get_db_session),
) -> DailyReadingResponse:
    return await bible_service.get_today_reading(db=db)


@router.get(
    "/day/{day}",
    response_model=DailyReadingResponse,
    responses={404: {"description": "Nothing planned for that day", "model": ErrorResponse}},
    summary="Reading for a day of the year",
)
async def get_day_reading(
    response: Response,
    day: int = Path(ge=1, le=366, description="Day of year (1-366)"),
    db: AsyncSession = Depends(get_db_session),
) -> DailyReadingResponse:
    result = await bible_service.get_daily_reading(db=db, day=day)
    response.headers["Cache-Control"] = _TEXT_CACHE
    return result


@router.put(
    "/verses/{verse_id}",
    response_model=VerseResponse,
    responses={
        404: {"description": "Verse not found", "model": ErrorResponse},
        400: {"description": "Invalid text", "model": ErrorResponse},
    },
    summary="Replace a verse's text",
    description="Updates the text and regenerates its search text and word index in the same transaction.",
)
async def update_verse(
    body: VerseUpdateRequest,
    verse_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
) -> VerseResponse:
    return await bible_service.update_verse_text(db=db, verse_id=verse_id, text=body.text)
