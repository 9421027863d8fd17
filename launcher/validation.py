"""
Launch request validation. Runs before any network call.
"""

from typing import Optional
from urllib.parse import urlparse

from launcher.errors import ValidationError
from launcher.models import LaunchRequest
from launcher.utils import parse_public_key

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 200
MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB

# Magic bytes -> (content type, extension)
IMAGE_SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', 'image/png', 'png'),
    (b'\xff\xd8\xff', 'image/jpeg', 'jpg'),
    (b'GIF87a', 'image/gif', 'gif'),
    (b'GIF89a', 'image/gif', 'gif'),
)
SUPPORTED_IMAGE_FORMATS = ['PNG', 'JPG', 'JPEG', 'GIF']


def detect_image_type(data: bytes) -> Optional[tuple]:
    """Return (content_type, extension) for a supported image, else None"""
    for signature, content_type, extension in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return content_type, extension
    return None


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def _is_image_reference(value: str) -> bool:
    if value.startswith('data:image/'):
        return True
    if value.startswith('ipfs://'):
        return len(value) > len('ipfs://')
    return _is_http_url(value)


def validate_launch_request(request: LaunchRequest) -> None:
    """Raise ValidationError describing the first problem with the request"""
    if not request.name or not request.name.strip():
        raise ValidationError('Token name is required')
    if len(request.name.encode('utf-8')) > MAX_NAME_LENGTH:
        raise ValidationError(f'Token name must be {MAX_NAME_LENGTH} bytes (UTF-8) or less')

    if not request.symbol or not request.symbol.strip():
        raise ValidationError('Token symbol is required')
    if len(request.symbol.encode('utf-8')) > MAX_SYMBOL_LENGTH:
        raise ValidationError(f'Token symbol must be {MAX_SYMBOL_LENGTH} bytes (UTF-8) or less')

    if not request.recipient or not request.recipient.strip():
        raise ValidationError('User wallet address is required')
    if parse_public_key(request.recipient) is None:
        raise ValidationError('Invalid user wallet address')

    if request.description and len(request.description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f'Description must be {MAX_DESCRIPTION_LENGTH} characters or less')

    if request.image_url and not _is_image_reference(request.image_url):
        raise ValidationError('Invalid image URL - must be a valid URL or data URL')

    # An external image wins, so uploaded bytes only matter without one
    if request.image_bytes and not request.image_url:
        if len(request.image_bytes) > MAX_IMAGE_BYTES:
            raise ValidationError('Image must be 5MB or less')
        if detect_image_type(request.image_bytes) is None:
            raise ValidationError(f'Unsupported image format (supported: {", ".join(SUPPORTED_IMAGE_FORMATS)})')

    for label, link in (('Website', request.website), ('Twitter', request.twitter),
                        ('Telegram', request.telegram), ('Discord', request.discord)):
        if link and not _is_http_url(link):
            raise ValidationError(f'{label} link must be a valid URL')
