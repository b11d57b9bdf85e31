"""
Forms for the smart_qr app
"""
import json

from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator

from .models import QR_TYPE_CHOICES
from .utils.qr_generator import MAX_QR_SIZE, MIN_QR_SIZE, logo_host_allowed
from .utils.sizing import DEFAULT_VIEWPORT_WIDTH

hex_color = RegexValidator(r'^#[0-9a-fA-F]{6}$', 'Colour must look like #RRGGBB')

BULK_MAX_ITEMS = 100


class QRGenerateForm(forms.Form):
    """Form for generating a smart QR code"""

    qr_type = forms.ChoiceField(choices=QR_TYPE_CHOICES, label='Type')

    data = forms.CharField(
        label='Data',
        help_text='JSON object describing the product, vendor, order...',
    )

    size = forms.IntegerField(required=False, min_value=MIN_QR_SIZE, max_value=MAX_QR_SIZE, label='Size')
    logo = forms.URLField(required=False, assume_scheme='https', label='Logo URL')
    dark = forms.CharField(required=False, validators=[hex_color], label='Dark colour')
    light = forms.CharField(required=False, validators=[hex_color], label='Light colour')
    expanded = forms.BooleanField(required=False, label='Expanded')
    viewport_width = forms.IntegerField(required=False, min_value=0, label='Viewport width')
    max_usage = forms.IntegerField(required=False, min_value=1, label='Usage limit')

    def clean_data(self):
        """Data must be a JSON object"""
        raw = self.cleaned_data.get('data')
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            raise ValidationError('Data must be valid JSON')

        if not isinstance(data, dict):
            raise ValidationError('Data must be a JSON object')
        return data

    def clean_logo(self):
        logo = self.cleaned_data.get('logo')
        if logo and not logo_host_allowed(logo):
            raise ValidationError('Logo host is not allowed')
        return logo

    def colors(self):
        colors = {}
        if self.cleaned_data.get('dark'):
            colors['dark'] = self.cleaned_data['dark']
        if self.cleaned_data.get('light'):
            colors['light'] = self.cleaned_data['light']
        return colors or None

    def viewport(self):
        width = self.cleaned_data.get('viewport_width')
        return DEFAULT_VIEWPORT_WIDTH if width is None else width


class QRDownloadForm(forms.Form):
    """Query parameters of a PNG download"""

    size = forms.IntegerField(required=False, min_value=MIN_QR_SIZE, max_value=MAX_QR_SIZE)


class QRBulkForm(forms.Form):
    """Form for issuing many codes of one type at once"""

    qr_type = forms.ChoiceField(choices=QR_TYPE_CHOICES, label='Type')
    items = forms.CharField(label='Items', help_text='JSON array of data objects')
    max_usage = forms.IntegerField(required=False, min_value=1, label='Usage limit')

    def clean_items(self):
        raw = self.cleaned_data.get('items')
        try:
            items = json.loads(raw)
        except (TypeError, ValueError):
            raise ValidationError('Items must be valid JSON')

        if not isinstance(items, list) or not items:
            raise ValidationError('Items must be a non-empty JSON array')
        if len(items) > BULK_MAX_ITEMS:
            raise ValidationError(f'At most {BULK_MAX_ITEMS} items per request')
        if not all(isinstance(item, dict) for item in items):
            raise ValidationError('Every item must be a JSON object')
        return items
