"""
Ludexicon application package.

Business logic lives in ``app/services/``: validation, transformation and
domain rules (library statuses, review ownership, follow constraints and the
genre-based recommendation engine).  Persistence is delegated to the
top-level ``database`` module, whose helpers every service receives at
construction time.

``ludexicon_web.py`` is the integration point: it instantiates one of each
service against ``database`` and its route handlers call them with a
request-scoped SQLAlchemy session, giving a clean separation between the
HTTP layer and the domain.
"""
