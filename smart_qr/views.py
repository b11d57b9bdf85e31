import logging

from django.conf import settings
from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import QRRenderError
from .forms import QRBulkForm, QRDownloadForm, QRGenerateForm
from .models import SmartQRLink
from .services import ScanResult, SmartQRGenerator, generate_bulk, register_link, resolve_token
from .utils.actions import type_label
from .utils.content import QR_TYPES
from .utils.qr_generator import add_logo, download_filename, render_qr
from .utils.tracking import ModelTrackingSink, scan_analytics

logger = logging.getLogger(__name__)

RESOLVE_STATUS_CODES = {
    ScanResult.OK: 200,
    ScanResult.INVALID: 404,
    ScanResult.INACTIVE: 410,
    ScanResult.EXPIRED: 410,
    ScanResult.EXHAUSTED: 410,
}


@csrf_exempt
@require_POST
def qr_generate(request):
    """Generate a smart QR code and register its link"""
    form = QRGenerateForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid request', 'fields': form.errors}, status=400)

    issued = []

    def on_generated(content):
        issued.append(register_link(
            content,
            max_usage=form.cleaned_data.get('max_usage'),
            logo=form.cleaned_data.get('logo'),
            colors=form.colors(),
        ))

    generator = SmartQRGenerator(
        form.cleaned_data['qr_type'],
        form.cleaned_data['data'],
        size=form.cleaned_data.get('size'),
        logo=form.cleaned_data.get('logo') or None,
        colors=form.colors(),
        compact=not form.cleaned_data.get('expanded'),
        viewport_width=form.viewport(),
        tracker=ModelTrackingSink(),
        on_generated=on_generated,
    )
    generator.generate()

    if generator.failed or not issued:
        return JsonResponse({'error': generator.error or 'Failed to generate QR code'}, status=500)

    link = issued[0]
    filename, _ = generator.download()
    return JsonResponse({
        'success': True,
        'qrCode': {
            'id': link.id,
            'type': link.qr_type,
            'label': type_label(link.qr_type),
            'token': link.token,
            'url': generator.canonical_url,
            'dataUrl': generator.data_uri,
            'size': generator.responsive_size,
            'filename': filename,
            'content': generator.content.to_dict(),
            'details': generator.details(),
        },
    })


@require_GET
def qr_download(request, link_id):
    """PNG download of an issued code"""
    link = get_object_or_404(SmartQRLink, id=link_id)

    form = QRDownloadForm(request.GET)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid size', 'fields': form.errors}, status=400)
    size = form.cleaned_data.get('size') or settings.QR_DEFAULT_SIZE

    try:
        png = render_qr(link.canonical_url(), size, link.colors())
    except QRRenderError as e:
        logger.error("QR download failed for link %s: %s", link_id, e)
        return JsonResponse({'error': 'Failed to generate QR code'}, status=400)
    if link.logo:
        png = add_logo(png, link.logo, size)

    response = HttpResponse(png, content_type='image/png')
    response['Content-Disposition'] = f'attachment; filename="{download_filename(link.qr_type, link.payload)}"'
    return response


@require_GET
def qr_link_stats(request, link_id):
    """Usage statistics of a single link"""
    link = get_object_or_404(SmartQRLink, id=link_id)
    return JsonResponse({
        'id': link.id,
        'type': link.qr_type,
        'created': link.created_at.isoformat(),
        'expires': link.expires_at.isoformat() if link.expires_at else None,
        'usageCount': link.access_count,
        'maxUsage': link.max_usage,
        'isActive': link.is_active,
        'remainingUses': link.max_usage - link.access_count if link.max_usage else 'unlimited',
    })


@csrf_exempt
@require_POST
def qr_bulk_generate(request):
    """Issue links for many items of one type"""
    form = QRBulkForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid request', 'fields': form.errors}, status=400)

    links = generate_bulk(
        form.cleaned_data['qr_type'],
        form.cleaned_data['items'],
        max_usage=form.cleaned_data.get('max_usage'),
        tracker=ModelTrackingSink(),
    )
    return JsonResponse({
        'success': True,
        'qrCodes': [
            {
                'id': link.id,
                'type': link.qr_type,
                'token': link.token,
                'url': link.canonical_url(),
                'filename': download_filename(link.qr_type, link.payload),
                'expires': link.expires_at.isoformat() if link.expires_at else None,
            }
            for link in links
        ],
    })


@require_GET
def qr_analytics(request):
    """Scan analytics, optionally for one vendor (?vendor=)"""
    return JsonResponse(scan_analytics(vendor_id=request.GET.get('vendor') or None))


@require_GET
def qr_resolve(request, qr_type, token):
    """Public endpoint behind the canonical URL (no authorization)"""
    if qr_type not in QR_TYPES:
        raise Http404("Unknown QR type")

    result = resolve_token(qr_type, token, user_agent=request.META.get('HTTP_USER_AGENT', ''))
    return JsonResponse(result.to_dict(), status=RESOLVE_STATUS_CODES[result.status])
