from __future__ import annotations

from typing import TYPE_CHECKING

from app.breakroom.constants import SITE_NAME
from app.breakroom.modules.blog.models import BlogPost, UserBlog
from app.breakroom.og import OgInfo, extract_first_image, summarize

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def published_post(s: "Session", post_id: int, user_id: int | None = None) -> BlogPost | None:
    q = s.query(BlogPost).filter(BlogPost.id == post_id, BlogPost.is_published.is_(True))
    if user_id is not None:
        q = q.filter(BlogPost.user_id == user_id)
    return q.one_or_none()


def _post_og(post: BlogPost, url: str, base_url: str, fallback_description: str) -> tuple[OgInfo, str]:
    info = OgInfo(
        title=post.title,
        description=summarize(post.content or "") or fallback_description,
        url=url,
        image=extract_first_image(post.content or "", base_url),
        author_name=post.author.display_name,
    )
    return info, f"{post.title} - {SITE_NAME}"


def blog_og(s: "Session", blog_url: str, base_url: str, post_id: int | None = None) -> tuple[OgInfo, str] | None:
    """OG info and page title for a blog landing page or one of its posts; None when unknown."""
    blog = s.query(UserBlog).filter(UserBlog.blog_url == blog_url).one_or_none()
    if blog is None:
        return None
    owner = blog.user

    if post_id is not None:
        post = published_post(s, post_id, blog.user_id)
        if post is None:
            return None
        return _post_og(post, f"{base_url}/b/{blog_url}/{post.id}", base_url, f"A post on {blog.blog_name}")

    name = owner.display_name
    info = OgInfo(
        title=blog.blog_name,
        description=f"{blog.blog_name} by {name} on {SITE_NAME}",
        url=f"{base_url}/b/{blog_url}",
        image=f"{base_url}/api/uploads/{owner.photo_path}" if owner.photo_path else None,
        author_name=name,
    )
    return info, f"{blog.blog_name} - {SITE_NAME}"


def post_view_og(s: "Session", post_id: int, base_url: str) -> tuple[OgInfo, str] | None:
    post = published_post(s, post_id)
    if post is None:
        return None
    return _post_og(post, f"{base_url}/blog/view/{post.id}", base_url, f"A post on {SITE_NAME}")


def privacy_og(base_url: str) -> tuple[OgInfo, str]:
    info = OgInfo(
        title="Privacy Policy",
        description="Privacy Policy for the Prosaurus iOS app, provided by Cherry Blossom Development LLC.",
        url=f"{base_url}/privacy",
        site_name="Prosaurus",
    )
    return info, "Privacy Policy - Prosaurus"
