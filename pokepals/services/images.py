"""Data URL helpers and photo normalization."""
import base64
import binascii
import io
import re

from PIL import Image, ImageOps, UnidentifiedImageError

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$', re.DOTALL)

MAX_PHOTO_EDGE = 1536


class InvalidImageError(ValueError):
    pass


def split_data_url(data_url: str) -> tuple[str, bytes]:
    """Return ``(mime_type, raw_bytes)`` for a base64 data URL."""
    match = DATA_URL_PATTERN.match((data_url or '').strip())
    if not match:
        raise InvalidImageError('Expected a base64 data URL.')
    try:
        data = base64.b64decode(match.group('data'), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError('Data URL payload is not valid base64.') from exc
    if not data:
        raise InvalidImageError('Data URL payload is empty.')
    return match.group('mime').lower(), data


def to_data_url(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def normalize_photo(data_url: str) -> tuple[str, Image.Image]:
    """Decode a captured photo, apply EXIF rotation, downscale, and re-encode as JPEG.

    Returns the JPEG data URL together with the decoded image so callers can
    hand either one to the model client.
    """
    mime_type, data = split_data_url(data_url)
    if not mime_type.startswith('image/'):
        raise InvalidImageError(f'Unsupported content type {mime_type}.')

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        image = ImageOps.exif_transpose(image).convert('RGB')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise InvalidImageError('Photo could not be decoded.') from exc

    image.thumbnail((MAX_PHOTO_EDGE, MAX_PHOTO_EDGE))

    buffer = io.BytesIO()
    image.save(buffer, format='JPEG', quality=90)
    return to_data_url('image/jpeg', buffer.getvalue()), image
