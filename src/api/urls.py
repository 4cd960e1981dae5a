"""Main API URL router for /api/v1/."""
from django.urls import path

from api.v1 import views as v1_views
from bi import views as bi_views
from meddpicc import views as meddpicc_views
from peak import views as peak_views
from performance import views as performance_views

urlpatterns = [
    path('health/', v1_views.HealthView.as_view(), name='health'),

    # MEDDPICC
    path('opportunities/<uuid:pk>/meddpicc/', meddpicc_views.OpportunityMEDDPICCView.as_view(), name='opportunity-meddpicc'),
    path('meddpicc/recalculate/', meddpicc_views.MEDDPICCRecalculateView.as_view(), name='meddpicc-recalculate'),
    path('admin/meddpicc-config/', meddpicc_views.MEDDPICCConfigView.as_view(), name='meddpicc-config'),
    path('admin/meddpicc-config/validate/', meddpicc_views.MEDDPICCConfigValidateView.as_view(), name='meddpicc-config-validate'),
    path('admin/meddpicc-config/reset/', meddpicc_views.MEDDPICCConfigResetView.as_view(), name='meddpicc-config-reset'),
    path('admin/meddpicc-config/history/', meddpicc_views.MEDDPICCConfigHistoryView.as_view(), name='meddpicc-config-history'),

    # PEAK
    path('peak/transition/', peak_views.PEAKTransitionView.as_view(), name='peak-transition'),

    # Pharma BI
    path('bi/kpis/', bi_views.KPIView.as_view(), name='bi-kpis'),
    path('bi/kpi-definitions/', bi_views.KPIDefinitionListView.as_view(), name='bi-kpi-definitions'),

    # Sales performance
    path('kpis/', performance_views.SalesKPIView.as_view(), name='sales-kpis'),
    path('performance/leaderboard/', performance_views.LeaderboardView.as_view(), name='performance-leaderboard'),
]
