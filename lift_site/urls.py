from django.contrib import admin
from django.urls import path, include
from django.views.generic import RedirectView

from payments import views as payment_views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('favicon.ico', RedirectView.as_view(url='/static/favicon.ico', permanent=True)),
    path('api/auth/', include('accounts.urls', namespace='accounts')),
    path('api/campaigns/', include('campaigns.urls', namespace='campaigns')),
    path('api/donations/', include('payments.urls', namespace='payments')),
    path('webhooks/payments/', payment_views.webhook, name='payment_webhook'),
]
