"""
URL configuration for the CampusIQ backend.

Все REST endpoints живут под /api/. ViewSets регистрируются в общем
DefaultRouter, APIView с нестандартными путями подключаются явно.
"""
from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounts.views import TeacherViewSet, UserViewSet
from attendance import views as attendance_views
from audit.views import AuditLogViewSet
from exams.views import ExamViewSet
from fees import views as fees_views
from messaging.views import ConversationViewSet
from notifications.views import NotificationViewSet
from students.views import StudentViewSet
from visitors.views import VisitorViewSet

from .health import health_check, live_check, ready_check

router = DefaultRouter()
router.register(r'students', StudentViewSet, basename='student')
router.register(r'users', UserViewSet, basename='user')
router.register(r'teachers', TeacherViewSet, basename='teacher')
router.register(r'holidays', attendance_views.HolidayViewSet, basename='holiday')
router.register(r'fees/structures', fees_views.FeeStructureViewSet, basename='fee-structure')
router.register(r'fees/payments', fees_views.FeePaymentViewSet, basename='fee-payment')
router.register(r'exams', ExamViewSet, basename='exam')
router.register(r'conversations', ConversationViewSet, basename='conversation')
router.register(r'visitors', VisitorViewSet, basename='visitor')
router.register(r'notifications', NotificationViewSet, basename='notification')
router.register(r'audit-logs', AuditLogViewSet, basename='audit-log')

urlpatterns = [
    path('admin/', admin.site.urls),

    # Health checks (без аутентификации)
    path('api/health/', health_check, name='health'),
    path('api/health/ready/', ready_check, name='health-ready'),
    path('api/health/live/', live_check, name='health-live'),

    # Auth / школа
    path('api/auth/', include('accounts.urls')),
    path('api/school/', include('tenants.urls')),

    # Attendance
    path('api/attendance/', attendance_views.AttendanceView.as_view(), name='attendance'),
    path('api/attendance/today/', attendance_views.AttendanceTodayView.as_view(), name='attendance-today'),
    path('api/attendance/stats/', attendance_views.AttendanceStatsView.as_view(), name='attendance-stats'),

    # Fees
    path('api/fees/summary/', fees_views.FeeSummaryView.as_view(), name='fees-summary'),
    path('api/fees/student-status/', fees_views.StudentFeeStatusView.as_view(), name='fees-student-status'),

    # Reports
    path('api/reports/', include('reports.urls')),

    path('api/', include(router.urls)),
]
