"""
QR bitmap rendering and logo compositing
"""
import base64
import logging
from io import BytesIO
from urllib.parse import urlparse

import qrcode
import requests
from PIL import Image, ImageDraw, UnidentifiedImageError
from django.conf import settings

from smart_qr.exceptions import QRRenderError, LogoLoadError
from .signer import short_token

logger = logging.getLogger(__name__)

QR_MARGIN = 2
MIN_QR_SIZE = 32
MAX_QR_SIZE = 2048
LOGO_RATIO = 0.2
LOGO_PADDING = 5
DEFAULT_COLORS = {'dark': '#000000', 'light': '#FFFFFF'}
DATA_URI_PREFIX = 'data:image/png;base64,'

ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,
    'M': qrcode.constants.ERROR_CORRECT_M,
    'Q': qrcode.constants.ERROR_CORRECT_Q,
    'H': qrcode.constants.ERROR_CORRECT_H,
}


def build_canonical_url(base_url, qr_type, signature):
    """
    Short link encoded in the bitmap in place of the payload
    """
    return f"{base_url.rstrip('/')}/qr/{qr_type}/{short_token(signature)}"


def render_qr(url, size, colors=None, error_correction='H', margin=QR_MARGIN):
    """
    Encode a URL into a square PNG

    Args:
        url (str): Canonical URL
        size (int): Output width and height in pixels
        colors (dict): {'dark': ..., 'light': ...}
        error_correction (str): One of L, M, Q, H
        margin (int): Quiet zone in modules

    Returns:
        bytes: PNG image
    """
    if not url:
        raise QRRenderError('Nothing to encode')
    if not size or size <= 0:
        raise QRRenderError(f"Invalid QR size: {size}")
    if error_correction not in ERROR_CORRECTION_LEVELS:
        raise QRRenderError(f"Unknown error correction level: {error_correction}")

    colors = {**DEFAULT_COLORS, **(colors or {})}
    size = int(size)

    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECTION_LEVELS[error_correction],
            box_size=1,
            border=margin,
        )
        qr.add_data(url)
        qr.make(fit=True)

        modules = qr.modules_count + 2 * margin
        qr.box_size = max(1, size // modules)

        img = qr.make_image(fill_color=colors['dark'], back_color=colors['light'])
        img = img.get_image().convert('RGB')
        if img.size != (size, size):
            img = img.resize((size, size), Image.NEAREST)
    except (ValueError, qrcode.exceptions.DataOverflowError) as e:
        raise QRRenderError(f"QR encoding failed: {e}")

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def composite_logo(base_png, logo_bytes, size):
    """
    Paint a logo over the centre of a QR bitmap

    A white box padded by LOGO_PADDING pixels sits behind the logo, which takes
    LOGO_RATIO of the side.

    Args:
        base_png (bytes): QR bitmap
        logo_bytes (bytes): Logo image in any format Pillow reads
        size (int): Canvas side in pixels

    Returns:
        bytes: PNG image
    """
    logo_size = int(size * LOGO_RATIO)
    try:
        logo = Image.open(BytesIO(logo_bytes))
        logo.load()
        if logo_size > 0:
            logo = logo.convert('RGBA').resize((logo_size, logo_size), Image.LANCZOS)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise LogoLoadError(f"Cannot decode logo: {e}")
    except Exception as e:
        logger.exception("Unexpected error while decoding logo")
        raise LogoLoadError(f"Cannot decode logo: {e}")

    canvas = Image.open(BytesIO(base_png)).convert('RGB')
    if canvas.size != (size, size):
        canvas = canvas.resize((size, size), Image.NEAREST)

    offset = (size - logo_size) // 2

    draw = ImageDraw.Draw(canvas)
    draw.rectangle(
        [
            offset - LOGO_PADDING,
            offset - LOGO_PADDING,
            offset + logo_size + LOGO_PADDING - 1,
            offset + logo_size + LOGO_PADDING - 1,
        ],
        fill='white',
    )

    if logo_size > 0:
        canvas.paste(logo, (offset, offset), logo)

    buffer = BytesIO()
    canvas.save(buffer, format='PNG')
    return buffer.getvalue()


def logo_host_allowed(url, allowed_hosts=None):
    """Remote logos are only fetched from hosts listed in QR_LOGO_ALLOWED_HOSTS"""
    if allowed_hosts is None:
        allowed_hosts = getattr(settings, 'QR_LOGO_ALLOWED_HOSTS', [])
    parts = urlparse(url)
    if parts.scheme not in ('http', 'https'):
        return False
    return (parts.hostname or '').lower() in {host.lower() for host in allowed_hosts}


def load_logo(source, timeout=None):
    """
    Fetch logo bytes from raw bytes, an http(s) URL or a local path
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    if source.startswith(('http://', 'https://')):
        if not logo_host_allowed(source):
            raise LogoLoadError(f"Logo host is not allowed: {source}")
        timeout = timeout or getattr(settings, 'QR_LOGO_TIMEOUT', 5)
        try:
            response = requests.get(source, timeout=timeout, allow_redirects=False)
            response.raise_for_status()
            return response.content
        except requests.RequestException as e:
            raise LogoLoadError(f"Cannot fetch logo {source}: {e}")

    try:
        with open(source, 'rb') as f:
            return f.read()
    except OSError as e:
        raise LogoLoadError(f"Cannot read logo {source}: {e}")


def add_logo(base_png, logo_source, size):
    """
    Composite the logo, keeping the plain bitmap when the logo is unusable
    """
    try:
        return composite_logo(base_png, load_logo(logo_source), size)
    except LogoLoadError as e:
        logger.warning("Logo skipped: %s", e)
        return base_png


def to_data_uri(png):
    return DATA_URI_PREFIX + base64.b64encode(png).decode()


def from_data_uri(data_uri):
    if not data_uri.startswith(DATA_URI_PREFIX):
        raise ValueError('Not a PNG data URI')
    return base64.b64decode(data_uri[len(DATA_URI_PREFIX):])


def download_filename(qr_type, data):
    """kfar-{type}-{id}.png, with "qr" when the data has no id"""
    item_id = None
    if isinstance(data, dict):
        item_id = data.get('id')
    return f"kfar-{qr_type}-{item_id or 'qr'}.png"
