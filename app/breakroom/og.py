"""
Open Graph / Twitter card tags for shared links.

The SPA shell is static, so link previews (Slack, iMessage, Twitter) would all
show the same title. For blog and post URLs the server rewrites the shell's
<head> with tags describing the shared content.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from markupsafe import escape

from app.breakroom.constants import SITE_NAME

DESCRIPTION_MAX = 200

FALLBACK_INDEX_HTML = f"""<!DOCTYPE html>
<html lang="">
  <head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{SITE_NAME}</title>
  </head>
  <body>
    <div id="app"></div>
  </body>
</html>"""

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_IMG_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title>[^<]*</title>")


@dataclass(frozen=True)
class OgInfo:
    title: str
    description: str
    url: str
    image: str | None = None
    site_name: str = SITE_NAME
    author_name: str | None = None


def load_index_html(dist_dir: str | Path) -> str:
    """The built SPA shell, or a minimal one when no build is present (local dev)."""
    try:
        return (Path(dist_dir) / "index.html").read_text(encoding="utf-8")
    except OSError:
        return FALLBACK_INDEX_HTML


def strip_html(html: str) -> str:
    text = _TAG_RE.sub("", html or "").replace("&nbsp;", " ")
    return _WS_RE.sub(" ", text).strip()


def summarize(html: str) -> str:
    text = strip_html(html)
    if len(text) > DESCRIPTION_MAX:
        return text[: DESCRIPTION_MAX - 3] + "..."
    return text


def extract_first_image(html: str, base_url: str | None = None) -> str | None:
    m = _IMG_RE.search(html or "")
    if not m:
        return None
    src = m.group(1)
    if base_url and src.startswith("/"):
        return base_url.rstrip("/") + src
    return src


def build_og_tags(info: OgInfo) -> str:
    card = "summary_large_image" if info.image else "summary"
    lines = [
        f'<meta property="og:title" content="{escape(info.title)}" />',
        f'<meta property="og:description" content="{escape(info.description)}" />',
        f'<meta property="og:url" content="{escape(info.url)}" />',
        '<meta property="og:type" content="article" />',
        f'<meta property="og:site_name" content="{escape(info.site_name)}" />',
        f'<meta name="twitter:card" content="{card}" />',
        f'<meta name="twitter:title" content="{escape(info.title)}" />',
        f'<meta name="twitter:description" content="{escape(info.description)}" />',
        f'<meta name="description" content="{escape(info.description)}" />',
    ]
    if info.author_name:
        lines.append(f'<meta name="author" content="{escape(info.author_name)}" />')
    if info.image:
        lines.append(f'<meta property="og:image" content="{escape(info.image)}" />')
        lines.append(f'<meta name="twitter:image" content="{escape(info.image)}" />')
    return "\n".join("    " + line for line in lines)


def inject_og(html: str, tags: str, title: str | None = None) -> str:
    out = html.replace("</head>", tags + "\n  </head>", 1)
    if title:
        out = _TITLE_RE.sub(lambda _m: f"<title>{escape(title)}</title>", out, count=1)
    return out
