"""Generated placeholder images for albums and photos without a usable URL."""
from urllib.parse import quote_plus

PLACEHOLDER_HOST = "https://placehold.co"
BACKGROUND = "2D3748"
FOREGROUND = "9CA3AF"


def placeholder_url(text: str, width: int = 600, height: int = 450) -> str:
    label = quote_plus(text.strip() or "Image")
    return f"{PLACEHOLDER_HOST}/{width}x{height}/{BACKGROUND}/{FOREGROUND}?text={label}"


def album_cover_placeholder(name: str) -> str:
    return placeholder_url(name or "Album")


def photo_placeholder() -> str:
    return placeholder_url("Photo", 400, 400)


def image_error_placeholder() -> str:
    """Used by views when a stored URL fails to load."""
    return placeholder_url("Image Error")
