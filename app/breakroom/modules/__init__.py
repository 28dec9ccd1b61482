"""
Feature modules live under this package.

Each module owns its blueprint and models, and reuses the platform pieces
(auth, rbac, audit, storage, DB session) from app.breakroom.
"""
