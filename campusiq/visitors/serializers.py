from rest_framework import serializers

from students.models import Student

from .models import Visitor


class VisitorSerializer(serializers.ModelSerializer):
    student_id = serializers.PrimaryKeyRelatedField(
        source='student', queryset=Student.objects.all(), required=False, allow_null=True,
    )
    student_name = serializers.SerializerMethodField()
    pre_register = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = Visitor
        fields = [
            'id', 'visitor_name', 'visitor_phone', 'visitor_email', 'purpose', 'host_name',
            'host_type', 'student_id', 'student_name', 'id_proof', 'check_in', 'check_out',
            'badge_number', 'status', 'notes', 'pre_register', 'created_at',
        ]
        read_only_fields = ['id', 'check_in', 'check_out', 'badge_number', 'status', 'created_at']

    def get_student_name(self, obj):
        return obj.student.name if obj.student_id else ''

    def validate_student_id(self, student):
        school = self.context.get('school')
        if student is not None and (school is None or student.school_id != school.pk):
            raise serializers.ValidationError('Student not found.')
        return student
