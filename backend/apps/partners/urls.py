"""
URL routing for partner endpoints.
"""

from django.urls import path
from apps.partners import views

app_name = "partners"

urlpatterns = [
    path("partners", views.list_partners, name="list-partners"),
]
