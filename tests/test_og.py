from collections import defaultdict

import pytest
from werkzeug.security import generate_password_hash

from app.breakroom import auth as auth_module
from app.breakroom import create_app
from app.breakroom.db import session_scope
from app.breakroom.models import Base, User
from app.breakroom.modules.blog.models import BlogPost, UserBlog
from app.breakroom.og import OgInfo, build_og_tags, extract_first_image, inject_og, strip_html, summarize

SHELL = """<!DOCTYPE html>
<html>
  <head>
    <title>Prosaurus Breakroom</title>
  </head>
  <body><div id="app"></div></body>
</html>"""


@pytest.fixture()
def app(tmp_path, monkeypatch):
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(SHELL, encoding="utf-8")
    (dist / "robots.txt").write_text("User-agent: *", encoding="utf-8")

    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("SPA_DIST_DIR", str(dist))
    monkeypatch.setenv("CORS_ORIGIN", "https://example.test/")
    monkeypatch.setattr(auth_module, "_login_attempts", defaultdict(list))

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        u = User(
            handle="dana",
            email="dana@example.com",
            password_hash=generate_password_hash("pw"),
            first_name="Dana",
            last_name="Reyes",
            photo_path="profiles/profile_1.jpg",
        )
        s.add(u)
        s.flush()
        s.add(UserBlog(user_id=u.id, blog_url="dana", blog_name="Dana Writes"))
        s.add(BlogPost(
            user_id=u.id,
            title="Hello <World>",
            content='<p>First&nbsp;post   body</p><img src="/api/uploads/blog/1/a.png">',
            is_published=True,
        ))
        s.add(BlogPost(user_id=u.id, title="Draft", content="<p>secret</p>", is_published=False))
        s.add(BlogPost(user_id=u.id, title="Empty", content="", is_published=True))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _post_id(app, title):
    with session_scope(app) as s:
        return s.query(BlogPost).filter(BlogPost.title == title).one().id


# ---------- helpers ----------
def test_strip_and_summarize():
    assert strip_html("<p>a&nbsp;b</p>\n<div>  c </div>") == "a b c"
    assert summarize("<p>short</p>") == "short"
    long = summarize("<p>" + "x" * 300 + "</p>")
    assert len(long) == 200
    assert long.endswith("...")


def test_extract_first_image():
    html = '<p>hi</p><img class="a" src="/api/uploads/x.png"><img src="https://cdn/y.png">'
    assert extract_first_image(html, "https://example.test") == "https://example.test/api/uploads/x.png"
    assert extract_first_image('<img src="https://cdn/y.png">', "https://example.test") == "https://cdn/y.png"
    assert extract_first_image("<p>none</p>") is None


def test_build_tags_escapes_and_picks_card():
    tags = build_og_tags(OgInfo(title='A "quoted" <title>', description="d", url="https://e/x"))
    assert 'content="A &#34;quoted&#34; &lt;title&gt;"' in tags
    assert 'content="summary"' in tags
    assert "og:image" not in tags

    tags = build_og_tags(OgInfo(title="t", description="d", url="u", image="https://e/i.png", author_name="Dana"))
    assert 'content="summary_large_image"' in tags
    assert '<meta property="og:image" content="https://e/i.png" />' in tags
    assert '<meta name="author" content="Dana" />' in tags


def test_inject_replaces_title_once():
    out = inject_og(SHELL, "<meta x>", "New & Title")
    assert "<meta x>\n  </head>" in out
    assert "<title>New &amp; Title</title>" in out
    assert "Prosaurus Breakroom</title>" not in out


def test_author_name_falls_back_to_handle():
    assert User(handle="dana", first_name="Dana", last_name="Reyes").display_name == "Dana Reyes"
    assert User(handle="dana", last_name="Reyes").display_name == "Reyes"
    assert User(handle="dana").display_name == "dana"


# ---------- routes ----------
def test_blog_landing_page(client):
    r = client.get("/b/dana")
    assert r.status_code == 200
    html = r.get_data(as_text=True)
    assert "<title>Dana Writes - Prosaurus Breakroom</title>" in html
    assert 'content="Dana Writes by Dana Reyes on Prosaurus Breakroom"' in html
    assert 'content="https://example.test/b/dana"' in html
    assert 'content="https://example.test/api/uploads/profiles/profile_1.jpg"' in html


def test_blog_post_page(app, client):
    post_id = _post_id(app, "Hello <World>")
    html = client.get(f"/b/dana/{post_id}").get_data(as_text=True)
    assert "<title>Hello &lt;World&gt; - Prosaurus Breakroom</title>" in html
    assert 'content="First post body"' in html
    assert 'content="https://example.test/api/uploads/blog/1/a.png"' in html
    assert f'content="https://example.test/b/dana/{post_id}"' in html
    assert '<meta name="author" content="Dana Reyes" />' in html


def test_post_without_text_uses_fallback_description(app, client):
    post_id = _post_id(app, "Empty")
    html = client.get(f"/b/dana/{post_id}").get_data(as_text=True)
    assert 'content="A post on Dana Writes"' in html

    html = client.get(f"/blog/view/{post_id}").get_data(as_text=True)
    assert 'content="A post on Prosaurus Breakroom"' in html
    assert f'content="https://example.test/blog/view/{post_id}"' in html


def test_unknown_or_unpublished_serves_plain_shell(app, client):
    draft_id = _post_id(app, "Draft")
    for path in ("/b/nobody", f"/b/dana/{draft_id}", f"/blog/view/{draft_id}", "/blog/view/9999"):
        r = client.get(path)
        assert r.status_code == 200
        assert r.get_data(as_text=True) == SHELL


def test_privacy_page(client):
    html = client.get("/privacy").get_data(as_text=True)
    assert "<title>Privacy Policy - Prosaurus</title>" in html
    assert '<meta property="og:site_name" content="Prosaurus" />' in html
    assert 'content="https://example.test/privacy"' in html


def test_spa_static_and_fallback(client):
    assert client.get("/robots.txt").get_data(as_text=True) == "User-agent: *"
    assert client.get("/some/client/route").get_data(as_text=True) == SHELL
    assert client.get("/api/nope").status_code == 404
