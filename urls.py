from django.urls import path, include, re_path
from smart_qr import views

urlpatterns = [
    path('app/', include('smart_qr.urls')),
    re_path(r'^qr/(?P<qr_type>[a-z0-9]+)/(?P<token>[0-9a-f]{16})/?$', views.qr_resolve, name='qr_resolve'),
]
