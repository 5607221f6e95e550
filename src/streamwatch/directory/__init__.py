"""Directory of known streamers used to classify streams."""

from .directory import Directory, DirectoryRefresher, parse_directory_posts

__all__ = [
    'Directory',
    'DirectoryRefresher',
    'parse_directory_posts',
]
