"""
Tests for envelope building: remote enrichment, local fallback, cancellation
"""
import json
from datetime import timedelta
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings
from django.utils import timezone

from smart_qr.exceptions import BuildCancelled, EnrichmentError, InvalidContentError
from smart_qr.services import CancellationToken, SmartContentBuilder
from smart_qr.utils.content import QR_TYPES, QRContent, validate_content
from smart_qr.utils.enrichment import LocalFallbackEnricher, RemoteEnricher, get_remote_enricher

from .factories import FailingEnricher, QRDataFactory

SAMPLE_DATA = {
    'product': {'id': 'td-001', 'name': 'Seitan Schnitzel', 'price': 32},
    'vendor': {'id': 'teva-deli', 'name': 'Teva Deli'},
    'order': {'id': 'ord-17', 'items': [{'id': 'td-001', 'qty': 2}], 'total': 64},
    'collection': {'id': 'pickup-dimona', 'title': 'Dimona pickup point'},
    'p2p': {'id': 'swap-3', 'title': 'Tempeh for hummus'},
}


def completion_response(content):
    response = mock.Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {'choices': [{'message': {'content': content}}]}
    return response


def remote_enricher():
    return RemoteEnricher(
        api_url='https://api.example.com/v1',
        api_key='key',
        signer=QRDataFactory.signer(),
    )


class FallbackBuilderTests(SimpleTestCase):

    def setUp(self):
        self.builder = SmartContentBuilder(
            remote=FailingEnricher(),
            fallback=LocalFallbackEnricher(signer=QRDataFactory.signer()),
        )

    def test_every_type_builds_valid_envelope(self):
        for qr_type in QR_TYPES:
            before = timezone.now()
            content = self.builder.build_content(qr_type, SAMPLE_DATA[qr_type])

            validate_content(content)
            self.assertTrue(content.signature)
            self.assertLessEqual(content.created, timezone.now())
            self.assertGreaterEqual(content.created, before)
            self.assertTrue(content.fallback)
            self.assertFalse(content.ai_enhanced)

    def test_only_orders_expire_in_fallback(self):
        order = self.builder.build_content('order', SAMPLE_DATA['order'])
        self.assertIsNotNone(order.expires)
        self.assertGreater(order.expires, order.created)

        for qr_type in ('product', 'vendor', 'collection', 'p2p'):
            self.assertIsNone(self.builder.build_content(qr_type, SAMPLE_DATA[qr_type]).expires)

    def test_enrichment_failure_still_resolves_with_fresh_timestamp(self):
        content = self.builder.build_content('product', SAMPLE_DATA['product'])
        self.assertLess(abs((timezone.now() - content.created).total_seconds()), 1)
        self.assertEqual(self.builder.remote.calls, 1)

    def test_unserialisable_data_uses_fallback_signer(self):
        content = self.builder.build_content('product', {'id': 'td-002', 'tags': {'vegan'}})
        validate_content(content)
        self.assertEqual(content.algorithm, 'SHA256')

    def test_unsupported_type(self):
        with self.assertRaises(ValueError):
            self.builder.build_content('coupon', {})

    def test_cancelled_build_is_discarded(self):
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(BuildCancelled):
            self.builder.build_content('product', SAMPLE_DATA['product'], cancel_token=token)

    @override_settings(QR_ENRICHMENT_API_URL=None, QR_ENRICHMENT_API_KEY=None)
    def test_unconfigured_remote_falls_back(self):
        self.assertIsNone(get_remote_enricher())
        builder = SmartContentBuilder()
        self.assertTrue(builder.build_content('vendor', SAMPLE_DATA['vendor']).fallback)


class RemoteEnricherTests(SimpleTestCase):

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_enriched_envelope(self, post):
        post.return_value = completion_response(json.dumps({
            'payload': {'id': 'td-001', 'name': 'Seitan Schnitzel', 'tagline': 'Crispy'},
            'metadata': {'campaign': 'summer'},
        }))

        content = remote_enricher().enrich('product', SAMPLE_DATA['product'])

        validate_content(content)
        self.assertTrue(content.ai_enhanced)
        self.assertFalse(content.fallback)
        self.assertEqual(content.payload['tagline'], 'Crispy')
        self.assertEqual(content.marketing, {'campaign': 'summer'})
        self.assertIsNone(content.expires)

        url = post.call_args[0][0]
        self.assertEqual(url, 'https://api.example.com/v1/chat/completions')
        self.assertEqual(post.call_args[1]['headers']['Authorization'], 'Bearer key')

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_suggested_expiry(self, post):
        post.return_value = completion_response(json.dumps({
            'payload': {'id': 'td-001'},
            'metadata': {'expires_in_hours': 2},
        }))

        content = remote_enricher().enrich('product', SAMPLE_DATA['product'])
        self.assertEqual(content.expires - content.created, timedelta(hours=2))

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_collection_expiry_window(self, post):
        post.return_value = completion_response(json.dumps({'payload': SAMPLE_DATA['collection']}))
        content = remote_enricher().enrich('collection', SAMPLE_DATA['collection'])
        self.assertEqual(content.expires - content.created, timedelta(hours=48))

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_transport_error(self, post):
        post.side_effect = requests.ConnectionError('down')
        with self.assertRaises(EnrichmentError):
            remote_enricher().enrich('product', SAMPLE_DATA['product'])

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_malformed_response(self, post):
        post.return_value = completion_response('not json at all')
        with self.assertRaises(EnrichmentError):
            remote_enricher().enrich('product', SAMPLE_DATA['product'])

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_builder_uses_remote_when_it_works(self, post):
        post.return_value = completion_response(json.dumps({'payload': SAMPLE_DATA['vendor']}))
        builder = SmartContentBuilder(remote=remote_enricher())

        content = builder.build_content('vendor', SAMPLE_DATA['vendor'])
        self.assertTrue(content.ai_enhanced)

    @mock.patch('smart_qr.utils.enrichment.requests.post')
    def test_builder_survives_http_error(self, post):
        response = mock.Mock()
        response.raise_for_status.side_effect = requests.HTTPError('500 Server Error')
        post.return_value = response
        builder = SmartContentBuilder(remote=remote_enricher())

        content = builder.build_content('order', SAMPLE_DATA['order'])
        validate_content(content)
        self.assertTrue(content.fallback)
        self.assertIsNotNone(content.expires)

    def test_requires_configuration(self):
        with self.assertRaises(ValueError):
            RemoteEnricher(api_url='https://api.example.com', api_key='')


class ValidateContentTests(SimpleTestCase):

    def make(self, **overrides):
        created = timezone.now()
        fields = {
            'qr_type': 'product',
            'payload': {'id': 'td-001'},
            'created': created,
            'signature': 'ab' * 32,
            'algorithm': 'HMAC-SHA256',
        }
        fields.update(overrides)
        return QRContent(**fields)

    def test_valid(self):
        self.assertIsNotNone(validate_content(self.make()))

    def test_rejects_short_signature(self):
        with self.assertRaises(InvalidContentError):
            validate_content(self.make(signature='abc'))

    def test_rejects_expiry_before_creation(self):
        created = timezone.now()
        with self.assertRaises(InvalidContentError):
            validate_content(self.make(created=created, expires=created - timedelta(seconds=1)))

    def test_rejects_unknown_type(self):
        with self.assertRaises(ValueError):
            self.make(qr_type='coupon')

    def test_to_dict(self):
        data = self.make().to_dict()
        self.assertEqual(data['version'], 1)
        self.assertEqual(data['metadata']['security']['signature'], 'ab' * 32)
        self.assertIsNone(data['metadata']['expires'])
