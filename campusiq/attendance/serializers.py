from rest_framework import serializers

from .models import Attendance, AttendanceStatus, Holiday


class AttendanceSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source='student.name', read_only=True)
    roll_number = serializers.CharField(source='student.roll_number', read_only=True)
    marked_by_name = serializers.SerializerMethodField()

    class Meta:
        model = Attendance
        fields = [
            'id', 'student', 'student_name', 'roll_number', 'class_name', 'date',
            'status', 'notes', 'marked_by', 'marked_by_name', 'marked_at',
        ]
        read_only_fields = fields

    def get_marked_by_name(self, obj):
        return obj.marked_by.get_full_name() if obj.marked_by_id else ''


class AttendanceRecordSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=AttendanceStatus.choices)
    notes = serializers.CharField(max_length=300, required=False, allow_blank=True, default='')


class MarkAttendanceSerializer(serializers.Serializer):
    date = serializers.DateField()
    class_name = serializers.CharField(max_length=50)
    records = AttendanceRecordSerializer(many=True, allow_empty=False)

    def validate_records(self, records):
        ids = [r['student_id'] for r in records]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError('Duplicate student_id in records.')
        return records


class HolidaySerializer(serializers.ModelSerializer):

    class Meta:
        model = Holiday
        fields = ['id', 'date', 'name', 'type', 'description', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        school = self.context.get('school')
        day = attrs.get('date', getattr(self.instance, 'date', None))
        if school is not None and day is not None:
            qs = Holiday.objects.filter(school=school, date=day)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError({'date': 'A holiday already exists on this date.'})
        return attrs
