"""
Central constants for the Breakroom application.
"""
from __future__ import annotations

SITE_NAME = "Prosaurus Breakroom"
DEFAULT_BASE_URL = "https://www.prosaurus.com"

# Responsive breakpoint name -> grid column count (dashboard layout)
BREAKPOINT_COLS = {"lg": 5, "md": 4, "sm": 3, "xs": 2, "xxs": 1}
COL_COUNTS = frozenset(BREAKPOINT_COLS.values())

# Default size of a newly added dashboard block, in grid cells
DEFAULT_BLOCK_W = 2
DEFAULT_BLOCK_H = 2

# Songs / lyrics
SONG_VISIBILITIES = ("private", "public")
COLLABORATOR_ROLES = ("editor", "viewer")

# Gallery uploads
ARTWORK_MAX_BYTES = 10 * 1024 * 1024
ARTWORK_EXTENSIONS = frozenset({".jpeg", ".jpg", ".png", ".gif", ".webp"})
ARTWORK_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})

# Test reporting
TEST_PLATFORMS = ("web", "android")

# Storage key prefixes served through /uploads redirects
UPLOAD_PREFIXES = ("profiles/", "chat/", "blog/", "gallery/")
LEGACY_UPLOAD_PREFIXES = {"profile_": "profiles/", "chat_": "chat/"}
