"""
PDF Chat History Service

Backend for the PDF chat application that stores the named chat sessions of
authenticated users.

Features:
- Chat upsert keyed by chat ID with wholesale history replacement
- Schema-validated chat transcripts
- Bearer-token authentication (HS256 secret or RS256 via JWKS)
- SQLAlchemy persistence (PostgreSQL or SQLite)
- Health monitoring
"""

__version__ = "1.0.0"
__description__ = "Chat session persistence for the PDF chat application"
