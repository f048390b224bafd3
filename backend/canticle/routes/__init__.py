# Routes package init
"""
Canticle Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles one resource.

Route Inventory:
    - bible.py:   /api/bible/...   books, chapters, verses, search, symphony
    - songs.py:   /api/songs/...   songbooks, songs, search, transposition
    - health.py:  GET /health      service health check

Design Principle:
    Routes are THIN: they extract data from the request, call a service and
    set response headers. Business logic lives in services.
"""
