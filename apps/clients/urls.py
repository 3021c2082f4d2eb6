"""
Clients URL Configuration
"""
from django.urls import path

from .views import ClientPoliciesView, ClientPolicyStatsView

urlpatterns = [
    path('<uuid:client_id>/policies', ClientPoliciesView.as_view(), name='client-policies'),
    path('<uuid:client_id>/policy-stats', ClientPolicyStatsView.as_view(), name='client-policy-stats'),
]
