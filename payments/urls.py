from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('', views.donations_collection, name='collection'),
    path('stats/summary/', views.stats_summary, name='stats'),
    path('campaign/<int:campaign_id>/', views.campaign_donations, name='campaign_donations'),
    path('user/<int:user_id>/', views.user_donations, name='user_donations'),
    path('<int:pk>/', views.donation_resource, name='detail'),
    path('<int:pk>/refund/', views.refund, name='refund'),
]
