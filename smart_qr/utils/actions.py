"""
Helpers for the download / copy / share actions
"""
import time

COPIED_DISPLAY_SECONDS = 2.0

TYPE_LABELS = {
    'product': 'Product QR',
    'vendor': 'Vendor QR',
    'order': 'Order QR',
    'collection': 'Collection QR',
    'p2p': 'P2P Exchange QR',
}


class CopiedIndicator:
    """
    Transient "copied" affordance.

    Each copy pushes the hide deadline forward, so repeated copies keep the
    indicator visible without a gap.
    """

    def __init__(self, duration=COPIED_DISPLAY_SECONDS, clock=time.monotonic):
        self.duration = duration
        self.clock = clock
        self.visible_until = None

    def mark(self, now=None):
        now = self.clock() if now is None else now
        self.visible_until = now + self.duration

    def is_visible(self, now=None):
        if self.visible_until is None:
            return False
        now = self.clock() if now is None else now
        return now < self.visible_until


def build_share_payload(qr_type, png):
    """
    Payload for a platform share sheet

    Returns:
        dict: {'title', 'text', 'files': [(filename, bytes, mimetype)]}
    """
    return {
        'title': f"KFAR {qr_type} QR Code",
        'text': f"Scan this QR code to access {qr_type} information",
        'files': [(f"kfar-qr-{qr_type}.png", png, 'image/png')],
    }


def type_label(qr_type):
    return TYPE_LABELS.get(qr_type, 'QR Code')
