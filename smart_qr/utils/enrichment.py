"""
Content enrichers: remote AI-backed enrichment and a local fallback
"""
import json
import logging

import requests
from django.conf import settings
from django.utils import timezone

from smart_qr.exceptions import EnrichmentError
from .content import QRContent, calculate_expiry, check_type, FALLBACK_EXPIRY_TYPES
from .signer import get_signer

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Generate optimized QR code content for {qr_type}. "
    "Include relevant metadata, ensure data efficiency, and add security considerations. "
    "Return a JSON structure optimized for QR encoding."
)


class ContentEnricher:
    """Strategy interface: turn a {type, data} pair into a signed envelope"""

    def enrich(self, qr_type, data):
        raise NotImplementedError


class RemoteEnricher(ContentEnricher):
    """Enrichment through a chat-completions style API"""

    def __init__(self, api_url=None, api_key=None, model=None, timeout=None, signer=None):
        self.api_url = api_url or getattr(settings, 'QR_ENRICHMENT_API_URL', None)
        self.api_key = api_key or getattr(settings, 'QR_ENRICHMENT_API_KEY', None)
        self.model = model or getattr(settings, 'QR_ENRICHMENT_MODEL', 'deepseek-chat')
        self.timeout = timeout or getattr(settings, 'QR_ENRICHMENT_TIMEOUT', 10)
        self.signer = signer or get_signer()

        if not self.api_url or not self.api_key:
            raise ValueError("QR_ENRICHMENT_API_URL and QR_ENRICHMENT_API_KEY must be configured")

    def _make_request(self, qr_type, data):
        """
        Call the enrichment API

        Args:
            qr_type (str): QR type
            data (dict): Caller data

        Returns:
            dict: Decoded API response
        """
        url = f"{self.api_url.rstrip('/')}/chat/completions"

        headers = {
            'Content-Type': 'application/json',
            'Authorization': f"Bearer {self.api_key}",
        }

        body = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT.format(qr_type=qr_type)},
                {'role': 'user', 'content': json.dumps({'type': qr_type, 'data': data}, default=str)},
            ],
            'temperature': 0.3,
            'max_tokens': 1000,
            'response_format': {'type': 'json_object'},
        }

        try:
            response = requests.post(url, headers=headers, json=body, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise EnrichmentError(f"Enrichment API error: {e}")
        except ValueError as e:
            raise EnrichmentError(f"Enrichment API returned invalid JSON: {e}")

    def _parse(self, result):
        try:
            message = result['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            raise EnrichmentError('Unexpected enrichment response format')

        try:
            parsed = json.loads(message)
        except (TypeError, ValueError):
            raise EnrichmentError('Enrichment response content is not JSON')

        if not isinstance(parsed, dict):
            raise EnrichmentError('Enrichment response content is not an object')
        return parsed

    def enrich(self, qr_type, data):
        check_type(qr_type)
        parsed = self._parse(self._make_request(qr_type, data))

        payload = parsed.get('payload') or data
        metadata = parsed.get('metadata')
        if not isinstance(metadata, dict):
            metadata = {}

        created = timezone.now()
        return QRContent(
            qr_type=qr_type,
            payload=payload,
            created=created,
            expires=calculate_expiry(qr_type, created, metadata.get('expires_in_hours')),
            signature=self.signer.sign(payload, qr_type, created),
            algorithm='HMAC-SHA256',
            ai_enhanced=True,
            marketing=metadata,
        )


class LocalFallbackEnricher(ContentEnricher):
    """Minimal envelope built without any network call. Never raises for a valid type."""

    def __init__(self, signer=None):
        self.signer = signer or get_signer()

    def enrich(self, qr_type, data):
        check_type(qr_type)
        created = timezone.now()
        signature, algorithm = self.signer.sign_or_fallback(data, qr_type, created)
        expires = calculate_expiry(qr_type, created) if qr_type in FALLBACK_EXPIRY_TYPES else None
        return QRContent(
            qr_type=qr_type,
            payload=data,
            created=created,
            expires=expires,
            signature=signature,
            algorithm=algorithm,
            fallback=True,
        )


def get_remote_enricher():
    """Remote enricher from settings, or None when it is not configured"""
    try:
        return RemoteEnricher()
    except ValueError:
        return None
