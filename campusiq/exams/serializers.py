from decimal import Decimal

from rest_framework import serializers

from accounts.models import User

from .models import Exam, Grade


class ExamSerializer(serializers.ModelSerializer):
    invigilator = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), required=False, allow_null=True,
    )
    grades_count = serializers.SerializerMethodField()

    class Meta:
        model = Exam
        fields = [
            'id', 'name', 'type', 'class_name', 'subject', 'subject_code', 'date',
            'start_time', 'end_time', 'total_marks', 'passing_marks', 'room',
            'invigilator', 'invigilator_name', 'status', 'grades_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'invigilator_name', 'grades_count', 'created_at', 'updated_at']

    def get_grades_count(self, obj):
        return obj.grades.count()

    def validate_total_marks(self, value):
        if value < 1:
            raise serializers.ValidationError('Total marks must be at least 1.')
        return value

    def validate_status(self, value):
        # completed - только через ввод оценок, cancelled - через cancel/DELETE
        current = getattr(self.instance, 'status', Exam.Status.SCHEDULED)
        manual = (Exam.Status.SCHEDULED, Exam.Status.ONGOING)
        if value != current and (current not in manual or value not in manual):
            raise serializers.ValidationError(
                f'Cannot change status from "{current}" to "{value}". '
                'Exams are completed by entering grades and cancelled with the cancel action.'
            )
        return value

    def validate_invigilator(self, user):
        school = self.context.get('school')
        if user is not None and (school is None or user.school_id != school.pk):
            raise serializers.ValidationError('Invigilator must belong to this school.')
        return user

    def validate(self, attrs):
        total = attrs.get('total_marks', getattr(self.instance, 'total_marks', None))
        passing = attrs.get('passing_marks', getattr(self.instance, 'passing_marks', 0))
        if total is not None and passing > total:
            raise serializers.ValidationError({'passing_marks': 'Passing marks cannot exceed total marks.'})

        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})

        if 'invigilator' in attrs:
            invigilator = attrs['invigilator']
            attrs['invigilator_name'] = invigilator.get_full_name() if invigilator else ''
        return attrs


class GradeSerializer(serializers.ModelSerializer):
    roll_number = serializers.CharField(source='student.roll_number', read_only=True)
    exam_name = serializers.CharField(source='exam.name', read_only=True)

    class Meta:
        model = Grade
        fields = [
            'id', 'exam', 'exam_name', 'student', 'student_name', 'roll_number', 'class_name',
            'subject', 'marks_obtained', 'total_marks', 'percentage', 'grade', 'rank',
            'remarks', 'entered_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class GradeEntrySerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    marks_obtained = serializers.DecimalField(max_digits=7, decimal_places=2, min_value=Decimal('0'))
    remarks = serializers.CharField(max_length=300, required=False, allow_blank=True, default='')


class EnterGradesSerializer(serializers.Serializer):
    grades = GradeEntrySerializer(many=True, allow_empty=False)

    def validate_grades(self, grades):
        ids = [g['student_id'] for g in grades]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError('Duplicate student_id in grades.')
        return grades
