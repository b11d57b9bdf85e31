"""
QR content envelope
"""
import re
from datetime import timedelta

from smart_qr.exceptions import InvalidContentError
from .signer import short_token

CONTENT_VERSION = 1

QR_TYPES = ('product', 'vendor', 'order', 'collection', 'p2p')

# product and vendor codes never expire
EXPIRY_WINDOWS = {
    'order': timedelta(hours=24),
    'p2p': timedelta(hours=24),
    'collection': timedelta(hours=48),
}

FALLBACK_EXPIRY_TYPES = ('order',)

_HEX_RE = re.compile(r'^[0-9a-f]{16,}$')


def check_type(qr_type):
    if qr_type not in QR_TYPES:
        raise ValueError(f"Unsupported QR type: {qr_type!r}")
    return qr_type


def calculate_expiry(qr_type, created, hours=None):
    """
    Expiry for a freshly built envelope

    Args:
        qr_type (str): QR type
        created (datetime): Creation time
        hours (float): Explicit lifetime suggested by enrichment

    Returns:
        datetime or None
    """
    if hours:
        return created + timedelta(hours=float(hours))
    window = EXPIRY_WINDOWS.get(qr_type)
    if window is None:
        return None
    return created + window


class QRContent:
    """Signed, versioned wrapper around a caller payload"""

    def __init__(self, qr_type, payload, created, signature, algorithm,
                 expires=None, version=CONTENT_VERSION, ai_enhanced=False,
                 fallback=False, marketing=None):
        self.version = version
        self.type = check_type(qr_type)
        self.payload = payload
        self.created = created
        self.expires = expires
        self.signature = signature
        self.algorithm = algorithm
        self.ai_enhanced = ai_enhanced
        self.fallback = fallback
        self.marketing = marketing or {}

    def __repr__(self):
        return f"<QRContent {self.type} {self.token} fallback={self.fallback}>"

    @property
    def token(self):
        return short_token(self.signature)

    def to_dict(self):
        return {
            'version': self.version,
            'type': self.type,
            'payload': self.payload,
            'metadata': {
                'created': self.created.isoformat(),
                'expires': self.expires.isoformat() if self.expires else None,
                'aiGenerated': self.ai_enhanced,
                'fallback': self.fallback,
                'marketing': self.marketing,
                'security': {
                    'signature': self.signature,
                    'algorithm': self.algorithm,
                },
            },
        }


def validate_content(content):
    """Raise InvalidContentError unless the envelope is well formed"""
    if content is None:
        raise InvalidContentError('Envelope is missing')
    if content.type not in QR_TYPES:
        raise InvalidContentError(f"Unsupported type {content.type!r}")
    if not isinstance(content.version, int) or content.version < 1:
        raise InvalidContentError('Bad version')
    if not content.signature or not _HEX_RE.match(content.signature):
        raise InvalidContentError('Signature must be a hex digest of at least 16 chars')
    if content.created is None:
        raise InvalidContentError('Creation time is missing')
    if content.expires is not None and content.expires <= content.created:
        raise InvalidContentError('Expiry must be after creation')
    return content
