from django.urls import path
from . import views

app_name = 'smart_qr'

urlpatterns = [
    # QR codes
    path('qr/generate/', views.qr_generate, name='qr_generate'),
    path('qr/bulk/', views.qr_bulk_generate, name='qr_bulk_generate'),
    path('qr/<int:link_id>/download/', views.qr_download, name='qr_download'),
    path('qr/<int:link_id>/stats/', views.qr_link_stats, name='qr_link_stats'),
    path('qr/analytics/', views.qr_analytics, name='qr_analytics'),
]
