from __future__ import annotations

from .activitypub import ActivityPubPostRepository
from .collector import filter_self_replies, get_longest_thread, get_possible_threads
from .config import load_config
from .config_schema import AppConfig
from .errors import ConfigError, FetchError, InvalidPostIdError, InvalidThreadError
from .language import apply_language_to_post, select_language_content
from .post import Author, AuthorId, Post
from .post_id import PostId, is_valid_post_url, try_create_post_id
from .read_thread import read_thread
from .repository import InMemoryPostRepository, PostRepository
from .thread import Thread, try_create_thread

__all__ = [
    "ActivityPubPostRepository",
    "AppConfig",
    "Author",
    "AuthorId",
    "ConfigError",
    "FetchError",
    "InMemoryPostRepository",
    "InvalidPostIdError",
    "InvalidThreadError",
    "Post",
    "PostId",
    "PostRepository",
    "Thread",
    "apply_language_to_post",
    "filter_self_replies",
    "get_longest_thread",
    "get_possible_threads",
    "is_valid_post_url",
    "load_config",
    "read_thread",
    "select_language_content",
    "try_create_post_id",
    "try_create_thread",
]
