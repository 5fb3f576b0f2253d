from django.urls import path
from . import views

urlpatterns = [
    path('api/auth/login/', views.login_view, name='login'),
    path('api/auth/logout/', views.logout_view, name='logout'),
    path('api/donors/', views.donors_view, name='donors'),
    path('api/donors/availability/', views.availability_view, name='donor-availability'),
    path('api/profile/', views.profile_view, name='profile'),
    path('api/donations/', views.donations_view, name='donations'),
    path('api/certificates/', views.certificates_view, name='certificates'),
    path('api/health-check/', views.health_check_view, name='health-check'),
]
