"""Finding and rewriting images embedded in post content."""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

# Matches src="text" and src='text'.
_SRC_RE = re.compile(r"""src=(["'])([^"']+)\1""", re.IGNORECASE)


@dataclass(frozen=True)
class ContentImage:
    """An image reference found in post content."""
    src: str
    path: str


def find_content_images(post_content: str, first_party_host: str) -> List[ContentImage]:
    """
    Find first-party image sources in a post body.

    Data URIs and absolute URLs on any host other than ``first_party_host``
    are skipped. Relative URLs are treated as first-party.

    Args:
        post_content: Post HTML
        first_party_host: The only host whose images are rewritten

    Returns:
        Unique images in order of first appearance
    """
    if "src=" not in post_content.lower():
        return []

    images: List[ContentImage] = []
    seen = set()
    for match in _SRC_RE.finditer(post_content):
        src = match.group(2)
        if src in seen:
            continue
        seen.add(src)

        candidate = src.strip()
        if not candidate or candidate[:5].lower() == "data:":
            continue

        parsed = urlparse(candidate)
        if parsed.netloc and parsed.hostname != first_party_host.lower():
            continue
        if parsed.scheme and parsed.scheme not in ("http", "https"):
            continue
        if not parsed.path:
            continue

        images.append(ContentImage(src=src, path=parsed.path))

    return images


def origin_file_path(path: str, prefixes: Iterable[str]) -> str:
    """
    Turn a URL path into the Drupal file path stored on attachments.

    ``/sites/default/files/2019/a%20b.jpg`` -> ``2019/a b.jpg``
    """
    decoded = unquote(path)
    for prefix in prefixes:
        if decoded.startswith(prefix):
            return decoded[len(prefix):]
    return decoded


class ContentImageRewriter:
    """
    Rewrites embedded image URLs to migrated attachment URLs.

    ``resolve`` receives a Drupal file path and returns the URL of the
    attachment imported from it, or None.
    """

    def __init__(
        self,
        resolve: Callable[[str], Optional[str]],
        path_prefixes: Iterable[str]
    ):
        self.resolve = resolve
        self.path_prefixes = list(path_prefixes)

    def rewrite(self, content: str, images: Iterable[ContentImage]) -> "RewriteResult":
        """Replace every resolvable image source in ``content``."""
        replaced = []
        for image in images:
            file_path = origin_file_path(image.path, self.path_prefixes)
            url = self.resolve(file_path)
            if not url:
                logger.debug(f"No migrated attachment for {file_path}")
                continue
            content = content.replace(image.src, url)
            replaced.append((image.src, url))
        return RewriteResult(content=content, replacements=replaced)


@dataclass
class RewriteResult:
    content: str
    replacements: list

    @property
    def changed(self) -> bool:
        return bool(self.replacements)
