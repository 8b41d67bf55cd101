from decimal import Decimal

from rest_framework import serializers

from .models import FeePayment, FeeStructure


class FeeStructureSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    late_fee_per_day = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False,
    )

    class Meta:
        model = FeeStructure
        fields = [
            'id', 'name', 'class_name', 'academic_year', 'amount', 'due_date', 'category',
            'description', 'is_recurring', 'frequency', 'late_fee_per_day', 'status',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'status', 'created_at', 'updated_at']


class FeePaymentSerializer(serializers.ModelSerializer):
    roll_number = serializers.CharField(source='student.roll_number', read_only=True)
    collected_by_name = serializers.SerializerMethodField()

    class Meta:
        model = FeePayment
        fields = [
            'id', 'student', 'student_name', 'roll_number', 'class_name', 'fee_structure', 'fee_name',
            'amount', 'late_fee', 'discount', 'total_paid', 'balance_due', 'payment_date',
            'payment_method', 'transaction_id', 'receipt_number', 'status', 'paid_by',
            'collected_by', 'collected_by_name', 'notes', 'created_at',
        ]
        read_only_fields = fields

    def get_collected_by_name(self, obj):
        return obj.collected_by.get_full_name() if obj.collected_by_id else ''


class RecordPaymentSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    fee_structure_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=FeePayment.Method.choices)
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False, default=Decimal('0'),
    )
    paid_by = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
