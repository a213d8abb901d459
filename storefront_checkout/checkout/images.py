"""
Cart line image extraction.

Cart lines come from several catalog versions and carry their picture under
different field names. Before submission we collect every plausible image
URL, in priority order, so the payment page can show the products.
"""

import re
from urllib.parse import urlsplit

from .models import CartLine

MAX_IMAGES_PER_LINE = 8

IMAGE_SUFFIX_PATTERN = re.compile(r"\.(jpg|jpeg|png|webp|gif|bmp|svg)(\?.*)?$", re.IGNORECASE)

# Hosts that serve images without a file extension in the URL
IMAGE_HOST_MARKERS = ("cloudinary", "firebase", "storage.googleapis.com")


def is_well_formed_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def looks_like_image(url: str) -> bool:
    if IMAGE_SUFFIX_PATTERN.search(url):
        return True
    return any(marker in url for marker in IMAGE_HOST_MARKERS)


def collect_image_urls(line: CartLine, limit: int = MAX_IMAGES_PER_LINE) -> list[str]:
    """
    Collect the image URLs of a cart line.

    Candidates are tried in order (single fields, then images, then
    image_urls), trimmed, and kept when they are well-formed image URLs not
    already collected.

    Returns:
        Up to `limit` URLs; the first one is the line's primary image
    """
    urls: list[str] = []
    for candidate in line.image_candidates:
        if not isinstance(candidate, str):
            continue
        url = candidate.strip()
        if not url or url in urls:
            continue
        if is_well_formed_url(url) and looks_like_image(url):
            urls.append(url)
            if len(urls) >= limit:
                break
    return urls
