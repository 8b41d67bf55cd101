"""
Массовый импорт учеников из массива записей (строки таблицы, уже
разобранные клиентом). Названия колонок сопоставляются гибко:
"Student Name", "student_name", "Name*" → name.
"""
import logging
import re

from .serializers import StudentSerializer

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    'name': ['name', 'studentname', 'fullname', 'studentsname'],
    'class_name': ['class', 'classname', 'grade', 'section', 'classsection', 'standard', 'std'],
    'roll_number': ['rollnumber', 'roll', 'rollno', 'sno', 'srno', 'serialnumber', 'admissionno', 'regno'],
    'parent_name': ['parentname', 'parent', 'fathername', 'guardian', 'guardianname', 'mothername'],
    'parent_phone': ['parentphone', 'parentmobile', 'phone', 'mobile', 'contact', 'contactnumber', 'phonenumber'],
    'parent_email': ['parentemail'],
    'email': ['email', 'studentemail', 'mail', 'emailaddress', 'emailid'],
    'address': ['address', 'addr', 'location', 'residentialaddress', 'homeaddress'],
    'admission_date': ['admissiondate', 'dateofadmission', 'doa'],
}

_ALIAS_INDEX = {alias: field for field, aliases in COLUMN_ALIASES.items() for alias in aliases}


def normalize_header(header):
    return re.sub(r'[^a-z0-9]', '', str(header).lower())


def normalize_record(record):
    """Переименовать колонки записи в поля Student; неизвестные колонки отбрасываются."""
    row = {}
    for key, value in record.items():
        field = _ALIAS_INDEX.get(normalize_header(key))
        if field is None or field in row:
            continue
        if value is None:
            continue
        value = str(value).strip()
        if value:
            row[field] = value
    return row


def import_students(school, records, remaining_capacity=None):
    """
    Создать учеников из записей.

    Строка с уже существующим (class_name, roll_number) пропускается,
    как и повтор внутри одного файла.

    Returns:
        (created: list[Student], skipped: list[dict], errors: list[dict])
    """
    created, skipped, errors = [], [], []
    seen = set()

    for index, record in enumerate(records, start=1):
        row = normalize_record(record)
        key = (row.get('class_name', ''), row.get('roll_number', ''))

        if key in seen:
            skipped.append({'row': index, 'reason': 'duplicate in file', 'roll_number': key[1]})
            continue

        serializer = StudentSerializer(data=row, context={'school': school})
        if not serializer.is_valid():
            errs = serializer.errors
            if set(errs) == {'roll_number'} and 'already exists' in str(errs['roll_number']):
                skipped.append({'row': index, 'reason': 'already exists', 'roll_number': key[1]})
            else:
                errors.append({'row': index, 'errors': errs})
            continue

        if remaining_capacity is not None and len(created) >= remaining_capacity:
            errors.append({'row': index, 'errors': {'non_field_errors': ['Plan student limit reached.']}})
            continue

        seen.add(key)
        created.append(serializer.save(school=school))

    logger.info(f'Student import for {school.slug}: {len(created)} created, '
                f'{len(skipped)} skipped, {len(errors)} errors')
    return created, skipped, errors
