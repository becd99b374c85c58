from django.urls import path
from . import views
from . import views_admin

app_name = 'campaigns'

urlpatterns = [
    path('', views.campaigns_collection, name='collection'),
    path('search/', views.search, name='search'),
    path('filter/<slug:category>/', views.filter_by_category, name='filter'),
    path('user/<int:user_id>/', views.campaign_for_user, name='for_user'),
    path('dashboard/', views_admin.dashboard, name='dashboard'),
    path('<int:pk>/', views.campaign_resource, name='detail'),
    path('<int:pk>/updates/', views.add_update, name='add_update'),
    path('<int:pk>/approve/', views.approve_campaign, name='approve'),
    path('<int:pk>/reject/', views.reject_campaign, name='reject'),
    path('<int:pk>/view/', views.increment_views, name='view'),
    path('<int:pk>/share/', views.increment_shares, name='share'),
]
