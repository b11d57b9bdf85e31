"""
Signing utilities for QR content envelopes
"""
import json
import hmac
import hashlib

from django.conf import settings

from smart_qr.exceptions import SigningError

TOKEN_LENGTH = 16
ALGORITHM = 'HMAC-SHA256'
FALLBACK_ALGORITHM = 'SHA256'


def short_token(signature):
    """Public short token embedded in canonical URLs"""
    return signature[:TOKEN_LENGTH]


class ContentSigner:
    """Creates and checks envelope signatures"""

    def __init__(self, secret_key=None):
        self.secret_key = secret_key or getattr(settings, 'QR_SIGNING_SECRET', None) or settings.SECRET_KEY

    def _canonical(self, payload, qr_type, created):
        try:
            return json.dumps(
                {'type': qr_type, 'payload': payload, 'created': created.isoformat()},
                ensure_ascii=False,
                sort_keys=True,
                separators=(',', ':'),
            )
        except (TypeError, ValueError) as e:
            raise SigningError(f"Payload is not serialisable: {e}")

    def sign(self, payload, qr_type, created):
        """
        Sign an envelope

        Args:
            payload: JSON-compatible payload
            qr_type (str): QR type
            created (datetime): Creation timestamp of the envelope

        Returns:
            str: Hex digest
        """
        message = self._canonical(payload, qr_type, created)
        return hmac.new(
            self.secret_key.encode('utf-8'),
            message.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    def verify(self, signature, payload, qr_type, created):
        """Check a signature against the original fields"""
        try:
            expected = self.sign(payload, qr_type, created)
        except SigningError:
            return False
        return hmac.compare_digest(signature, expected)

    def fallback_sign(self, payload, qr_type, created):
        """
        Deterministic local digest for payloads the regular signer rejects.
        Never raises.
        """
        message = '|'.join([self.secret_key, qr_type, repr(payload), created.isoformat()])
        return hashlib.sha256(message.encode('utf-8', 'replace')).hexdigest()

    def sign_or_fallback(self, payload, qr_type, created):
        """
        Returns:
            tuple: (signature, algorithm)
        """
        try:
            return self.sign(payload, qr_type, created), ALGORITHM
        except SigningError:
            return self.fallback_sign(payload, qr_type, created), FALLBACK_ALGORITHM


def get_signer():
    """Signer built from current settings"""
    return ContentSigner()
