"""
Test helpers for building envelopes, links and images
"""
from datetime import timedelta
from io import BytesIO

import cv2
import numpy as np
from PIL import Image, ImageOps
from django.utils import timezone

from smart_qr.exceptions import EnrichmentError
from smart_qr.models import SmartQRLink
from smart_qr.utils.enrichment import ContentEnricher, LocalFallbackEnricher
from smart_qr.utils.signer import ContentSigner, short_token

TEST_SECRET = 'test-secret'
BASE_URL = 'https://kfar.market'


class FailingEnricher(ContentEnricher):
    """Remote enricher that is always down"""

    def __init__(self):
        self.calls = 0

    def enrich(self, qr_type, data):
        self.calls += 1
        raise EnrichmentError('enrichment service unavailable')


class CountingEnricher(ContentEnricher):
    """Wraps the local enricher and counts calls"""

    def __init__(self):
        self.calls = 0
        self.inner = LocalFallbackEnricher(signer=ContentSigner(TEST_SECRET))

    def enrich(self, qr_type, data):
        self.calls += 1
        content = self.inner.enrich(qr_type, data)
        content.fallback = False
        content.ai_enhanced = True
        return content


class BrokenSink:
    def track_scan(self, event):
        raise RuntimeError('analytics backend down')


class QRDataFactory:
    """Factory for test data"""

    @staticmethod
    def signer():
        return ContentSigner(TEST_SECRET)

    @staticmethod
    def create_link(qr_type='product', payload=None, expires_at=None, max_usage=None,
                    is_active=True, created_at=None, **fields):
        payload = payload if payload is not None else {'id': 'td-001', 'name': 'Seitan Schnitzel'}
        created_at = created_at or timezone.now()
        signature = ContentSigner(TEST_SECRET).sign(payload, qr_type, created_at)
        return SmartQRLink.objects.create(
            qr_type=qr_type,
            token=short_token(signature),
            signature=signature,
            payload=payload,
            created_at=created_at,
            expires_at=expires_at,
            max_usage=max_usage,
            is_active=is_active,
            **fields
        )

    @staticmethod
    def create_expired_link(qr_type='order'):
        now = timezone.now()
        return QRDataFactory.create_link(
            qr_type=qr_type,
            payload={'orderId': 'ord-17'},
            created_at=now - timedelta(hours=30),
            expires_at=now - timedelta(hours=6),
        )

    @staticmethod
    def logo_png(size=64, color=(200, 30, 30, 255)):
        buffer = BytesIO()
        Image.new('RGBA', (size, size), color).save(buffer, format='PNG')
        return buffer.getvalue()


def decode_qr(png):
    """Decode a QR bitmap with OpenCV, returns '' when nothing was found"""
    image = Image.open(BytesIO(png)).convert('RGB')
    image = ImageOps.expand(image, border=40, fill='white')
    bgr = cv2.cvtColor(np.array(image), cv2.COLOR_RGB2BGR)
    data, points, _ = cv2.QRCodeDetector().detectAndDecode(bgr)
    return data if points is not None else ''
