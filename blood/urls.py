from django.urls import path
from . import views

urlpatterns = [
    # Matching and outreach
    path('api/donors/match/', views.donor_match_view, name='donor-match'),
    path('api/donors/contact/', views.contact_donor_view, name='donor-contact'),

    # Requests
    path('api/blood-requests/', views.blood_requests_view, name='blood-requests'),
    path('api/blood-requests/emergency/', views.emergency_request_view, name='blood-request-emergency'),
    path('api/blood-requests/<int:pk>/status/', views.update_request_status_view, name='blood-request-status'),

    # Stock, facilities and scheduling
    path('api/inventory/', views.inventory_view, name='inventory'),
    path('api/inventory/alerts/', views.inventory_alerts_view, name='inventory-alerts'),
    path('api/hospitals/', views.hospitals_view, name='hospitals'),
    path('api/events/', views.events_view, name='events'),
    path('api/queue/', views.queue_view, name='queue'),

    path('api/notifications/', views.notifications_view, name='notifications'),
    path('api/dashboard/', views.dashboard_view, name='dashboard'),
]
