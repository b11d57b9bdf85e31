"""
Best-effort tracking of generated and scanned QR codes
"""
import logging

from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

logger = logging.getLogger(__name__)

EVENT_GENERATED = 'generated'
EVENT_SCANNED = 'scanned'


class MemoryTrackingSink:
    """Keeps events in process memory"""

    def __init__(self):
        self.events = []

    def track_scan(self, event):
        self.events.append(event)


class ModelTrackingSink:
    """Stores events as QRScan rows"""

    def track_scan(self, event):
        from smart_qr.models import QRScan

        metadata = event.get('metadata') or {}
        QRScan.objects.create(
            event=event.get('event', EVENT_GENERATED),
            qr_type=event['type'],
            code=event.get('code', ''),
            user_agent=(metadata.get('userAgent') or '')[:255],
            metadata=metadata,
        )


def build_event(qr_type, code, data, event=EVENT_GENERATED):
    """
    Tracking event for a QR code

    Args:
        qr_type (str): QR type
        code (str): Canonical URL
        data (dict): Caller data, copied into the metadata
        event (str): generated or scanned

    Returns:
        dict
    """
    data = data if isinstance(data, dict) else {}
    metadata = dict(data)
    metadata.update({
        'productName': data.get('name') or data.get('title'),
        'vendorId': data.get('vendorId'),
        'generatedAt': timezone.now().isoformat(),
    })
    return {'type': qr_type, 'code': code, 'event': event, 'metadata': metadata}


def track(sink, event):
    """Send an event. Tracking errors never reach the caller."""
    if sink is None:
        return
    try:
        sink.track_scan(event)
    except Exception:
        logger.exception("QR tracking failed for %s", event.get('code'))


def scan_analytics(limit=10, vendor_id=None):
    """
    Aggregate stored tracking events

    Args:
        limit (int): Number of most scanned codes to return
        vendor_id (str): Only count events whose metadata names this vendor

    Returns:
        dict: totals, scans by type and day, most scanned codes
    """
    from smart_qr.models import QRScan

    events = QRScan.objects.all()
    if vendor_id:
        events = events.filter(metadata__vendorId=vendor_id)
    scans = events.filter(event=EVENT_SCANNED)

    by_type = {
        row['qr_type']: row['total']
        for row in scans.values('qr_type').annotate(total=Count('id')).order_by()
    }
    by_day = (
        scans.annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(total=Count('id'))
        .order_by('day')
    )
    top_codes = (
        scans.values('code', 'qr_type')
        .annotate(total=Count('id'))
        .order_by('-total', 'code')[:limit]
    )

    return {
        'total_scans': scans.count(),
        'total_generated': events.filter(event=EVENT_GENERATED).count(),
        'scans_by_type': by_type,
        'scans_by_day': [{'day': row['day'].isoformat(), 'total': row['total']} for row in by_day],
        'top_codes': list(top_codes),
    }
