from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .utils.qr_generator import build_canonical_url

QR_TYPE_CHOICES = [
    ('product', 'Product'),
    ('vendor', 'Vendor'),
    ('order', 'Order'),
    ('collection', 'Collection'),
    ('p2p', 'P2P exchange'),
]


class SmartQRLink(models.Model):
    """Issued envelope that a canonical QR URL resolves to"""

    qr_type = models.CharField(max_length=20, choices=QR_TYPE_CHOICES, verbose_name="Type")
    token = models.CharField(max_length=16, db_index=True, verbose_name="Short token")
    signature = models.CharField(max_length=128, verbose_name="Signature")
    version = models.PositiveSmallIntegerField(default=1, verbose_name="Envelope version")
    payload = models.JSONField(default=dict, verbose_name="Payload")

    ai_enhanced = models.BooleanField(default=False, verbose_name="AI enhanced")
    fallback = models.BooleanField(default=False, verbose_name="Built by local fallback")

    # Appearance at generation time
    logo = models.URLField(blank=True, verbose_name="Logo URL")
    dark_color = models.CharField(max_length=7, blank=True, verbose_name="Dark colour")
    light_color = models.CharField(max_length=7, blank=True, verbose_name="Light colour")

    # Usage
    access_count = models.PositiveIntegerField(default=0, verbose_name="Access count")
    max_usage = models.PositiveIntegerField(blank=True, null=True, verbose_name="Usage limit")
    last_accessed = models.DateTimeField(blank=True, null=True, verbose_name="Last accessed")

    created_at = models.DateTimeField(default=timezone.now, verbose_name="Created")
    expires_at = models.DateTimeField(blank=True, null=True, verbose_name="Expires")
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "QR link"
        verbose_name_plural = "QR links"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.qr_type} QR {self.token} (created: {self.created_at.strftime('%d.%m.%Y %H:%M')})"

    def canonical_url(self):
        return build_canonical_url(settings.KFAR_APP_URL, self.qr_type, self.signature)

    def colors(self):
        colors = {}
        if self.dark_color:
            colors['dark'] = self.dark_color
        if self.light_color:
            colors['light'] = self.light_color
        return colors or None

    def increment_access(self):
        """
        Count one resolution in the database

        Returns:
            bool: False when the usage limit was already reached
        """
        now = timezone.now()
        updated = (
            SmartQRLink.objects
            .filter(pk=self.pk)
            .filter(Q(max_usage__isnull=True) | Q(access_count__lt=F('max_usage')))
            .update(access_count=F('access_count') + 1, last_accessed=now)
        )
        self.refresh_from_db(fields=['access_count', 'last_accessed'])
        return bool(updated)

    def is_expired(self):
        if not self.expires_at:
            return False
        return timezone.now() > self.expires_at

    def is_exhausted(self):
        return self.max_usage is not None and self.access_count >= self.max_usage

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active'])


class QRScan(models.Model):
    """Tracking event for a generated or scanned code"""

    EVENT_CHOICES = [
        ('generated', 'Generated'),
        ('scanned', 'Scanned'),
    ]

    event = models.CharField(max_length=20, choices=EVENT_CHOICES, default='generated', verbose_name="Event")
    qr_type = models.CharField(max_length=20, choices=QR_TYPE_CHOICES, verbose_name="Type")
    code = models.CharField(max_length=255, blank=True, verbose_name="Canonical URL")
    user_agent = models.CharField(max_length=255, blank=True, verbose_name="User agent")
    metadata = models.JSONField(default=dict, verbose_name="Metadata")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created")

    class Meta:
        verbose_name = "QR event"
        verbose_name_plural = "QR events"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.event} {self.qr_type} {self.code}"
