import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.template.loader import render_to_string
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.renderers import JSONRenderer, StaticHTMLRenderer
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import HasModulePermission
from audit.services import audit_request
from exams.services import ExamService
from fees.models import FeePayment
from students.models import Student
from tenants.mixins import SchoolScopedViewMixin

from . import services

logger = logging.getLogger(__name__)


class ReportView(SchoolScopedViewMixin, APIView):
    permission_classes = [HasModulePermission]
    permission_module = 'reports'

    def required_int(self, name):
        value = self.request.query_params.get(name, '')
        if not value.isdigit():
            raise ValidationError({name: f'{name} is required'})
        return int(value)


class PrintableReportView(ReportView):
    """?format=html - печатная страница, иначе JSON."""
    renderer_classes = [JSONRenderer, StaticHTMLRenderer]
    template_name = None

    def respond(self, request, data, entity, entity_id):
        is_html = request.accepted_renderer.format == 'html'
        audit_request(request, 'export', entity, entity_id, metadata={'format': 'html' if is_html else 'json'})
        if is_html:
            return Response(render_to_string(self.template_name, {
                'data': data,
                'school': request.school,
                'currency': settings.DEFAULT_CURRENCY,
            }, request=request))
        return Response(data)


class DashboardView(ReportView):
    """GET /api/reports/dashboard/"""

    def get(self, request):
        return Response(services.dashboard(self.require_school(), request.user))


class MonthlyReportView(ReportView):
    """GET /api/reports/monthly/?month=&year=&class_name="""

    def get(self, request):
        school = self.require_school()
        params = request.query_params
        try:
            month, year = services.parse_month_year(params.get('month'), params.get('year'))
        except services.ReportError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        report = services.monthly_attendance(school, month, year, params.get('class_name') or None)
        audit_request(request, 'export', 'monthly_report', f'{year}-{month:02d}',
                      metadata={'class_name': report['class_name']})
        return Response(report)


class FeeReceiptView(PrintableReportView):
    """GET /api/reports/fee-receipt/?payment_id=[&format=html]"""
    template_name = 'reports/fee_receipt.html'

    def get(self, request):
        school = self.require_school()
        payment = get_object_or_404(
            FeePayment.objects.for_school(school).select_related('student', 'collected_by', 'school'),
            pk=self.required_int('payment_id'),
        )
        return self.respond(request, services.fee_receipt(payment), 'fee_receipt', payment.pk)


class ReportCardView(PrintableReportView):
    """GET /api/reports/report-card/?student_id=&exam_id=[&format=html]"""
    template_name = 'reports/report_card.html'

    def get(self, request):
        school = self.require_school()
        student = get_object_or_404(Student.objects.for_school(school), pk=self.required_int('student_id'))
        exam_id = request.query_params.get('exam_id', '')

        card = ExamService.report_card(school, student, int(exam_id) if exam_id.isdigit() else None)
        if not card['exams']:
            raise NotFound('No grades found for this student')
        return self.respond(request, card, 'report_card', student.pk)
