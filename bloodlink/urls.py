"""bloodlink URL Configuration

Every route other than the admin site is a JSON endpoint under ``api/``;
the ``blood`` and ``donor`` apps each contribute their own patterns.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    path('', include('donor.urls')),
    path('', include('blood.urls')),
]
