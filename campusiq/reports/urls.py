from django.urls import path

from . import views

urlpatterns = [
    path('dashboard/', views.DashboardView.as_view(), name='reports-dashboard'),
    path('monthly/', views.MonthlyReportView.as_view(), name='reports-monthly'),
    path('fee-receipt/', views.FeeReceiptView.as_view(), name='reports-fee-receipt'),
    path('report-card/', views.ReportCardView.as_view(), name='reports-report-card'),
]
