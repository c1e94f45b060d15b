"""
Main URL mapping configuration file.

The fileshare core exposes no views of its own, public file pages are
rendered by the presentation layer on top of ``sharing_operations``.
"""

from django.contrib import admin
from django.urls import path

admin.autodiscover()

urlpatterns = [
    path('admin/', admin.site.urls),
]
