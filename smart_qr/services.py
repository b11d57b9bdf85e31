import logging
import threading

from django.conf import settings
from django.db import transaction

from .exceptions import BuildCancelled, QRRenderError
from .utils.actions import CopiedIndicator, build_share_payload
from .utils.content import check_type, validate_content
from .utils.enrichment import LocalFallbackEnricher, get_remote_enricher
from .utils.qr_generator import (
    add_logo,
    build_canonical_url,
    download_filename,
    render_qr,
    to_data_uri,
)
from .utils.sizing import DEFAULT_VIEWPORT_WIDTH, compute_responsive_size
from .utils.tracking import EVENT_SCANNED, ModelTrackingSink, build_event, track

logger = logging.getLogger(__name__)

RENDER_ERROR_MESSAGE = 'Failed to generate QR code'


class BuildState:
    IDLE = 'idle'
    BUILDING = 'building'
    BUILT = 'built'
    BUILT_VIA_FALLBACK = 'built_via_fallback'
    RENDERED = 'rendered'
    FAILED = 'failed'


class CancellationToken:
    """Signals that a build's result is no longer wanted"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self.cancelled:
            raise BuildCancelled('Build superseded')


class SmartContentBuilder:
    """Builds envelopes: remote enrichment first, local fallback on any failure"""

    def __init__(self, remote=None, fallback=None, use_remote=True):
        if remote is None and use_remote:
            remote = get_remote_enricher()
        self.remote = remote
        self.fallback = fallback or LocalFallbackEnricher()

    def build_content(self, qr_type, data, cancel_token=None):
        """
        Build a signed envelope

        Args:
            qr_type (str): QR type
            data (dict): Caller data
            cancel_token (CancellationToken): Set when the result is stale

        Returns:
            QRContent: Never fails because of enrichment
        """
        check_type(qr_type)

        content = None
        if self.remote is not None:
            try:
                content = validate_content(self.remote.enrich(qr_type, data))
            except Exception as e:
                logger.warning("Enrichment failed for %s, using local fallback: %s", qr_type, e)
        else:
            logger.debug("Enrichment API is not configured, using local fallback")

        if content is None:
            content = self.fallback.enrich(qr_type, data)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return content


class SmartQRGenerator:
    """
    One QR code on a page: builds the envelope, renders the bitmap, tracks the
    event and serves the actions. Resizing and expanding only re-render the
    bitmap; changing type or data rebuilds the envelope.
    """

    def __init__(self, qr_type, data, size=None, logo=None, colors=None, compact=True,
                 base_url=None, builder=None, tracker=None, on_generated=None,
                 viewport_width=DEFAULT_VIEWPORT_WIDTH):
        self.qr_type = check_type(qr_type)
        self.data = data if data is not None else {}
        self.size = size or getattr(settings, 'QR_DEFAULT_SIZE', 300)
        self.logo = logo
        self.colors = colors
        self.base_url = base_url or settings.KFAR_APP_URL
        self.builder = builder or SmartContentBuilder()
        self.tracker = tracker
        self.on_generated = on_generated

        self.expanded = not compact
        self.viewport_width = viewport_width
        self.responsive_size = compute_responsive_size(self.size, viewport_width, self.expanded)

        self.state = BuildState.IDLE
        self.content = None
        self.canonical_url = None
        self.png = None
        self.error = ''
        self.copied = CopiedIndicator()
        self.closed = False
        self._token = None

    def __repr__(self):
        return f"<SmartQRGenerator {self.qr_type} {self.state}>"

    @property
    def data_uri(self):
        return to_data_uri(self.png) if self.png else None

    @property
    def failed(self):
        return self.state == BuildState.FAILED

    def generate(self):
        """
        Build and render a fresh code

        Returns:
            SmartQRGenerator or None when the result was discarded
        """
        if self.closed:
            return None
        if self._token is not None:
            self._token.cancel()
        token = self._token = CancellationToken()

        self.state = BuildState.BUILDING
        self.error = ''

        try:
            content = self.builder.build_content(self.qr_type, self.data, cancel_token=token)
        except BuildCancelled:
            logger.debug("Discarding stale %s build", self.qr_type)
            return None

        self.content = content
        self.state = BuildState.BUILT_VIA_FALLBACK if content.fallback else BuildState.BUILT
        self.canonical_url = build_canonical_url(self.base_url, self.qr_type, content.signature)

        if not self._render(token):
            return None if token.cancelled else self

        if self.on_generated:
            self.on_generated(content)

        track(self.tracker, build_event(self.qr_type, self.canonical_url, self.data))
        return self

    def _render(self, token):
        try:
            png = render_qr(self.canonical_url, self.responsive_size, self.colors)
            if self.logo:
                png = add_logo(png, self.logo, self.responsive_size)
        except QRRenderError as e:
            logger.error("QR generation error: %s", e)
            if not token.cancelled:
                self.png = None
                self.state = BuildState.FAILED
                self.error = RENDER_ERROR_MESSAGE
            return False

        if token.cancelled:
            return False
        self.png = png
        self.state = BuildState.RENDERED
        self.error = ''
        return True

    def update(self, qr_type=None, data=None):
        """New type or data: the in-flight build is dropped and a new one starts"""
        if qr_type is not None:
            self.qr_type = check_type(qr_type)
        if data is not None:
            self.data = data
        return self.generate()

    def _resize_to(self, size):
        if size == self.responsive_size:
            return
        self.responsive_size = size
        if self.content is not None and not self.closed:
            self._render(self._token)

    def resize(self, viewport_width):
        self.viewport_width = viewport_width
        self._resize_to(compute_responsive_size(self.size, viewport_width, self.expanded))

    def toggle_expanded(self):
        self.expanded = not self.expanded
        self._resize_to(compute_responsive_size(self.size, self.viewport_width, self.expanded))
        return self.expanded

    def close(self):
        self.closed = True
        if self._token is not None:
            self._token.cancel()

    def download(self):
        """
        Returns:
            tuple: (filename, png bytes) or None when there is no bitmap
        """
        if self.failed or not self.png:
            return None
        return download_filename(self.qr_type, self.data), self.png

    def copy_link(self, writer, now=None):
        """Write the canonical URL with the given clipboard writer"""
        if self.failed or self.content is None:
            return False
        try:
            writer(self.canonical_url)
        except Exception:
            logger.exception("Failed to copy QR link")
            return False
        self.copied.mark(now)
        return True

    def share(self, share_func):
        """Hand the bitmap to a platform share capability, if there is one"""
        if share_func is None or self.failed or not self.png:
            return False
        try:
            share_func(build_share_payload(self.qr_type, self.png))
        except Exception:
            logger.exception("Share failed")
            return False
        return True

    def details(self):
        if self.content is None:
            return {}
        return {
            'created': self.content.created.isoformat(),
            'expires': self.content.expires.isoformat() if self.content.expires else None,
            'signature_present': bool(self.content.signature),
            'ai_enhanced': self.content.ai_enhanced,
            'fallback': self.content.fallback,
        }


def register_link(content, max_usage=None, logo=None, colors=None):
    """Store an issued envelope so its canonical URL can be resolved"""
    from .models import SmartQRLink

    colors = colors or {}
    return SmartQRLink.objects.create(
        logo=logo or '',
        dark_color=colors.get('dark', ''),
        light_color=colors.get('light', ''),
        qr_type=content.type,
        token=content.token,
        signature=content.signature,
        version=content.version,
        payload=content.payload,
        created_at=content.created,
        expires_at=content.expires,
        ai_enhanced=content.ai_enhanced,
        fallback=content.fallback,
        max_usage=max_usage,
    )


def generate_bulk(qr_type, items, max_usage=None, builder=None, tracker=None, base_url=None):
    """
    Issue one link per item, all of the same type

    Args:
        qr_type (str): QR type
        items (list): Caller data objects
        max_usage (int): Usage limit applied to every link
        builder (SmartContentBuilder): Envelope builder shared by all items
        tracker: Tracking sink for the generated events

    Returns:
        list: SmartQRLink per item, in input order
    """
    check_type(qr_type)
    builder = builder or SmartContentBuilder()
    base_url = base_url or settings.KFAR_APP_URL

    links = []
    with transaction.atomic():
        for data in items:
            content = builder.build_content(qr_type, data)
            links.append(register_link(content, max_usage=max_usage))

    for link, data in zip(links, items):
        track(tracker, build_event(qr_type, build_canonical_url(base_url, qr_type, link.signature), data))

    logger.info("Issued %s %s QR links in bulk", len(links), qr_type)
    return links


class ScanResult:
    OK = 'ok'
    INVALID = 'invalid'
    INACTIVE = 'inactive'
    EXPIRED = 'expired'
    EXHAUSTED = 'exhausted'

    MESSAGES = {
        INVALID: 'Invalid or expired QR code',
        INACTIVE: 'QR code is no longer active',
        EXPIRED: 'QR code has expired',
        EXHAUSTED: 'QR code usage limit reached',
    }

    def __init__(self, status, qr_type, data=None, redirect_url=None):
        self.status = status
        self.qr_type = qr_type
        self.data = data
        self.redirect_url = redirect_url

    @property
    def success(self):
        return self.status == self.OK

    @property
    def message(self):
        return self.MESSAGES.get(self.status, '')

    def to_dict(self):
        return {
            'success': self.success,
            'status': self.status,
            'type': self.qr_type,
            'data': self.data,
            'redirectUrl': self.redirect_url,
            'message': self.message,
        }


def redirect_for(qr_type, payload):
    payload = payload if isinstance(payload, dict) else {}
    if qr_type == 'product':
        product_id = payload.get('id') or payload.get('productId')
        return f"/product/{product_id}" if product_id else None
    if qr_type == 'vendor':
        vendor_id = payload.get('vendorId') or payload.get('id')
        return f"/store/{vendor_id}" if vendor_id else None
    if qr_type == 'order':
        order_id = payload.get('orderId') or payload.get('id')
        return f"/orders/{order_id}" if order_id else None
    return None


def resolve_token(qr_type, token, user_agent='', tracker=None):
    """
    Resolve a canonical URL to its payload, enforcing expiry and usage limits

    Returns:
        ScanResult
    """
    from .models import SmartQRLink

    link = SmartQRLink.objects.filter(qr_type=qr_type, token=token).first()
    if link is None:
        return ScanResult(ScanResult.INVALID, qr_type)
    if not link.is_active:
        return ScanResult(ScanResult.INACTIVE, qr_type)
    if link.is_expired():
        link.deactivate()
        return ScanResult(ScanResult.EXPIRED, qr_type)
    if link.is_exhausted():
        link.deactivate()
        return ScanResult(ScanResult.EXHAUSTED, qr_type)

    if not link.increment_access():
        link.deactivate()
        return ScanResult(ScanResult.EXHAUSTED, qr_type)

    event = build_event(qr_type, link.canonical_url(), link.payload, event=EVENT_SCANNED)
    event['metadata']['userAgent'] = user_agent
    track(tracker or ModelTrackingSink(), event)

    return ScanResult(ScanResult.OK, qr_type, data=link.payload,
                      redirect_url=redirect_for(qr_type, link.payload))
