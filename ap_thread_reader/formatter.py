from __future__ import annotations

from html import escape
from typing import Iterable

from .post import Post


def format_post(post: Post, *, include_metadata: bool = False) -> str:
    if not include_metadata:
        return post.content

    published = escape(post.published_at, quote=True)
    parts = [
        post.content,
        '\n<footer class="post-meta">',
        f'<time datetime="{published}">{published}</time>',
    ]
    if post.url:
        href = escape(post.url, quote=True)
        parts.append(f' | <a href="{href}" target="_blank" rel="noopener noreferrer">original</a>')
    parts.append("</footer>")
    return "".join(parts)


def format_thread(
    posts: Iterable[Post],
    *,
    separator: str = "\n\n",
    include_metadata: bool = False,
) -> str:
    return separator.join(format_post(p, include_metadata=include_metadata) for p in posts)


def format_thread_as_html(posts: Iterable[Post]) -> str:
    """One <article> per post; content is inserted as-is and must be sanitized by the caller."""
    return "\n".join(
        f'<article class="post" data-post-id="{escape(post.id.href, quote=True)}">\n'
        f'  <div class="post-content">{post.content}</div>\n'
        "</article>"
        for post in posts
    )
