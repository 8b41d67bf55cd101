import logging

from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import HasModulePermission
from audit.services import audit_request, build_changes
from notifications.services import emit_activity, notify_fee_payment, notify_fee_reminder
from students.models import Student
from students.views import students_visible_to
from tenants.mixins import SchoolScopedViewMixin

from .models import FeePayment, FeeStructure
from .serializers import (
    FeePaymentSerializer,
    FeeStructureSerializer,
    RecordPaymentSerializer,
    RefundSerializer,
)
from .services import AlreadyRefundedError, FeeService, FeeServiceError

logger = logging.getLogger(__name__)

STRUCTURE_AUDIT_FIELDS = [
    'name', 'class_name', 'academic_year', 'amount', 'due_date', 'category',
    'description', 'is_recurring', 'frequency', 'late_fee_per_day',
]


class FeeStructureViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
    """
    /api/fees/structures/ - начисления.

    DELETE - мягкое удаление (status=inactive), платежи сохраняются.
    """
    queryset = FeeStructure.objects.all()
    serializer_class = FeeStructureSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'fees'
    permission_levels = {
        'update': 'manage',
        'partial_update': 'manage',
        'destroy': 'manage',
    }

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != 'list':
            return qs
        params = self.request.query_params
        structure_status = params.get('status', FeeStructure.Status.ACTIVE)
        if structure_status != 'all':
            qs = qs.filter(status=structure_status)
        if params.get('class_name'):
            qs = qs.filter(class_name=params['class_name'])
        if params.get('academic_year'):
            qs = qs.filter(academic_year=params['academic_year'])
        return qs.order_by('due_date')

    def perform_create(self, serializer):
        school = self.require_school()
        structure = serializer.save(school=school)

        audit_request(self.request, 'create', 'fee_structure', structure.pk,
                      metadata={'name': structure.name, 'amount': str(structure.amount)})
        emit_activity(
            school,
            title='New fee structure',
            message=f'{structure.name} fee of {structure.amount} created for {structure.class_name}',
            module='fees', entity_id=structure.pk, action_url='/fees',
            actor=self.request.user,
        )

        students = Student.objects.filter(
            school=school, class_name=structure.class_name, status=Student.Status.ACTIVE,
        )
        for student in students:
            notify_fee_reminder(
                student.parent_phone, student.parent_email or student.email,
                student.name, structure.name, structure.amount, structure.due_date,
            )

    def perform_update(self, serializer):
        old = {field: getattr(serializer.instance, field) for field in STRUCTURE_AUDIT_FIELDS}
        structure = serializer.save()
        changes = build_changes(old, structure, STRUCTURE_AUDIT_FIELDS)
        if changes:
            audit_request(self.request, 'update', 'fee_structure', structure.pk, changes=changes)

    def destroy(self, request, *args, **kwargs):
        structure = self.get_object()
        if not structure.is_active:
            return Response({'detail': 'Fee structure is already inactive.'}, status=status.HTTP_400_BAD_REQUEST)

        structure.status = FeeStructure.Status.INACTIVE
        structure.save(update_fields=['status', 'updated_at'])
        preserved = structure.payments.count()

        audit_request(request, 'delete', 'fee_structure', structure.pk,
                      changes={'status': {'old': FeeStructure.Status.ACTIVE, 'new': FeeStructure.Status.INACTIVE}},
                      metadata={'soft': True, 'preserved_payments': preserved})
        return Response({
            'detail': f'Fee structure "{structure.name}" deactivated',
            'preserved_payments': preserved,
        })


class FeePaymentViewSet(SchoolScopedViewMixin, viewsets.ReadOnlyModelViewSet):
    """
    /api/fees/payments/ - платежи.

    POST - записать платёж (FeeService.record_payment),
    POST {id}/refund/ - возврат.
    """
    queryset = FeePayment.objects.select_related('student', 'collected_by')
    serializer_class = FeePaymentSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'fees'
    permission_levels = {
        'create': 'write',
        'refund': 'manage',
    }

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.role in ('parent', 'student'):
            qs = qs.filter(student__in=students_visible_to(user, Student.objects.for_school(self.get_school())))
        if self.action != 'list':
            return qs
        params = self.request.query_params
        if params.get('student_id', '').isdigit():
            qs = qs.filter(student_id=int(params['student_id']))
        if params.get('class_name'):
            qs = qs.filter(class_name=params['class_name'])
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        return qs.order_by('-payment_date')

    def create(self, request, *args, **kwargs):
        school = self.require_school()
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        student = get_object_or_404(Student.objects.for_school(school), pk=data['student_id'])
        structure = get_object_or_404(FeeStructure.objects.for_school(school), pk=data['fee_structure_id'])

        try:
            payment = FeeService.record_payment(
                school, student, structure, data['amount'],
                payment_method=data['payment_method'],
                discount=data['discount'],
                paid_by=data['paid_by'],
                notes=data['notes'],
                transaction_id=data['transaction_id'],
                collected_by=request.user,
            )
        except FeeServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        audit_request(request, 'create', 'fee_payment', payment.pk, metadata={
            'amount': str(payment.total_paid),
            'receipt_number': payment.receipt_number,
            'student_name': student.name,
        })
        emit_activity(
            school,
            title='Fee payment received',
            message=f'{payment.total_paid} received from {student.name} ({student.class_name})',
            module='fees', entity_id=payment.pk, action_url='/fees',
            actor=request.user, type='success',
        )
        notify_fee_payment(payment, student.parent_phone, student.parent_email or student.email)

        return Response({
            **FeePaymentSerializer(payment).data,
            'receipt_number': payment.receipt_number,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        payment = self.get_object()
        old_status = payment.status
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payment = FeeService.refund_payment(payment, serializer.validated_data['reason'])
        except AlreadyRefundedError as e:
            return Response({'detail': str(e)}, status=status.HTTP_409_CONFLICT)

        audit_request(request, 'update', 'fee_payment', payment.pk,
                      changes={'status': {'old': old_status, 'new': FeePayment.Status.REFUNDED}},
                      metadata={'receipt_number': payment.receipt_number, 'refund': True})
        emit_activity(
            payment.school,
            title='Fee payment refunded',
            message=f'{payment.receipt_number} ({payment.total_paid}) refunded to {payment.student_name}',
            module='fees', entity_id=payment.pk, action_url='/fees',
            actor=request.user, type='warning', target_role='admin',
        )
        return Response(FeePaymentSerializer(payment).data)


class FeeSummaryView(SchoolScopedViewMixin, APIView):
    """
    GET /api/fees/summary/?class_name= - собрано / к оплате / по статусам.

    Сводка по всей школе: доступ по reports:read (admin, teacher), не fees:read.
    """
    permission_classes = [HasModulePermission]
    permission_module = 'reports'

    def get(self, request):
        school = self.require_school()
        qs = FeePayment.objects.for_school(school)
        if request.query_params.get('class_name'):
            qs = qs.filter(class_name=request.query_params['class_name'])
        return Response(FeeService.summary(qs))


class StudentFeeStatusView(SchoolScopedViewMixin, APIView):
    """GET /api/fees/student-status/?student_id= - остатки ученика по начислениям."""
    permission_classes = [HasModulePermission]
    permission_module = 'fees'

    def get(self, request):
        school = self.require_school()
        student_id = request.query_params.get('student_id', '')
        if not student_id.isdigit():
            return Response({'detail': 'student_id is required'}, status=status.HTTP_400_BAD_REQUEST)

        students = students_visible_to(request.user, Student.objects.for_school(school))
        student = get_object_or_404(students, pk=int(student_id))
        return Response(FeeService.student_status(school, student))
