"""
Fire-and-forget уведомления.

emit_activity()  - запись в ленту уведомлений школы (видна в SSE stream).
notify_*()       - постановка SMS / email в очередь Celery.

Ни одна функция здесь не бросает исключений: сбой канала логируется
и не влияет на HTTP-ответ основной операции.
"""
import logging

from django.conf import settings
from django.db import transaction

from .email_service import EmailService, render_email
from .models import Notification
from .tasks import send_email_task, send_sms_task

logger = logging.getLogger(__name__)


def emit_activity(school, *, title, message, module='', entity_id='', action_url='',
                  actor=None, type=Notification.Type.ACTIVITY, target_role=Notification.Target.ALL):
    """Сохранить activity-уведомление школы. Возвращает Notification или None."""
    if school is None:
        return None
    try:
        with transaction.atomic():
            return Notification.objects.create(
                school=school,
                type=type,
                title=title[:200],
                message=message,
                target_role=target_role,
                module=module,
                entity_id=str(entity_id or ''),
                action_url=action_url,
                actor_name=actor.get_full_name() if actor is not None else '',
                actor_role=getattr(actor, 'role', '') or '',
                created_by=actor,
            )
    except Exception as e:
        logger.error(f'emit_activity failed ({module} {entity_id}): {e}')
        return None


# ═══════════════════════════════════════════════════════════════
# Каналы доставки
# ═══════════════════════════════════════════════════════════════

def notify_sms(phone, message):
    """Поставить SMS в очередь. True если поставлено."""
    if not phone or not getattr(settings, 'FEATURE_SMS_NOTIFICATIONS', False):
        return False
    try:
        send_sms_task.delay(phone, message)
        return True
    except Exception as e:
        logger.warning(f'Failed to queue SMS to {phone}: {e}')
        return False


def notify_email(to, subject, message, html_message=None):
    """Поставить письмо в очередь; без брокера - отправка в фоновом потоке."""
    if not to or not getattr(settings, 'FEATURE_EMAIL_NOTIFICATIONS', False):
        return False
    try:
        send_email_task.delay(to, subject, message, html_message)
        return True
    except Exception as e:
        logger.warning(f'Broker unavailable for email to {to}, sending in background: {e}')
    try:
        return EmailService().send(to, subject, message, html_message, async_send=True)['success']
    except Exception as e:
        logger.error(f'Failed to send email to {to}: {e}')
        return False


def notify_templated_email(to, subject, template_name, context):
    try:
        html, text = render_email(template_name, context)
    except Exception as e:
        logger.error(f'Email template {template_name} failed: {e}')
        return False
    return notify_email(to, subject, text, html)


def notify_role(school, role, subject, message, *, sms=False, email=False):
    """
    Разослать SMS / email всем активным пользователям школы с ролью
    (role='all' - всем). Возвращает {'sms': n, 'email': m}.
    """
    from accounts.models import User

    sent = {'sms': 0, 'email': 0}
    if school is None or not (sms or email):
        return sent

    users = User.objects.filter(school=school, is_active=True)
    if role and role != Notification.Target.ALL:
        users = users.filter(role=role)

    for user in users.only('email', 'phone', 'name'):
        if sms and notify_sms(user.phone, f'{school.name}: {message}'):
            sent['sms'] += 1
        if email and notify_templated_email(user.email, subject, 'broadcast', {
            'school': school, 'user': user, 'subject': subject, 'message': message,
        }):
            sent['email'] += 1
    return sent


# ═══════════════════════════════════════════════════════════════
# Шаблонные сообщения
# ═══════════════════════════════════════════════════════════════

def _link_hours():
    return max(1, settings.PASSWORD_RESET_TIMEOUT // 3600)


def notify_welcome(user, school, activation_url=None, verify_url=None):
    """
    Приветственное письмо новому пользователю школы (+ SMS учителю).
    activation_url - для приглашённых без пароля, verify_url - подтверждение email.
    """
    notify_templated_email(user.email, f'Welcome to {school.name} on CampusIQ', 'welcome', {
        'user': user, 'school': school, 'activation_url': activation_url, 'verify_url': verify_url,
        'expires_hours': _link_hours(),
    })
    if user.role == 'teacher':
        notify_sms(
            user.phone,
            f'CampusIQ: Welcome {user.name}! Your teacher account at {school.name} has been created. '
            f'Check your email to get started.',
        )


def notify_password_reset(user, reset_url):
    notify_templated_email(user.email, 'Reset your CampusIQ password', 'password_reset', {
        'user': user, 'reset_url': reset_url, 'expires_hours': _link_hours(),
    })
    notify_sms(
        user.phone,
        f'CampusIQ: A password reset was requested for your account. Check your email ({user.email}) '
        f'for the reset link.',
    )


def notify_email_verification(user, verify_url):
    return notify_templated_email(user.email, 'Confirm your CampusIQ email', 'verify_email', {
        'user': user, 'verify_url': verify_url, 'expires_hours': _link_hours(),
    })


def notify_student_registration(parent_phone, parent_name, student_name, school_name):
    return notify_sms(
        parent_phone,
        f'CampusIQ: Dear {parent_name or "Parent"}, {student_name} has been registered at {school_name}. '
        f'Welcome aboard!',
    )


def notify_parent_absence(parent_phone, parent_name, student_name, date):
    return notify_sms(
        parent_phone,
        f'Hi {parent_name or "Parent"}, {student_name} was marked Absent on {date:%d %b %Y}. '
        f'Please contact the office if this is an error.',
    )


def notify_student_results(phone, student_name, exam_name):
    return notify_sms(
        phone,
        f'Hi {student_name}, the results for {exam_name} are now available on the CampusIQ portal.',
    )


def notify_fee_reminder(parent_phone, parent_email, student_name, fee_name, amount, due_date, overdue=False):
    """Напоминание родителю. overdue=True - срок прошёл, amount - непогашенный остаток."""
    if overdue:
        sms = (f'CampusIQ Reminder: {fee_name} for {student_name} was due on {due_date:%d %b %Y}. '
               f'Outstanding balance: {amount}. Please pay at the earliest.')
        subject = f'Fee overdue: {fee_name}'
    else:
        sms = (f'CampusIQ Reminder: {fee_name} of {amount} for {student_name} is due on {due_date:%d %b %Y}. '
               f'Please pay on time to avoid late fees.')
        subject = f'Fee reminder: {fee_name}'
    notify_sms(parent_phone, sms)
    notify_templated_email(parent_email, subject, 'fee_reminder', {
        'student_name': student_name, 'fee_name': fee_name, 'amount': amount, 'due_date': due_date,
        'overdue': overdue,
    })


def notify_fee_payment(payment, parent_phone='', parent_email=''):
    notify_sms(
        parent_phone,
        f'CampusIQ: Payment of {payment.total_paid} received for {payment.student_name} '
        f'({payment.fee_name}). Receipt: {payment.receipt_number}. Thank you!',
    )
    notify_templated_email(parent_email, f'Payment received: {payment.receipt_number}', 'fee_receipt', {
        'payment': payment,
    })


def notify_visitor_arrival(phone, visitor_name, purpose):
    return notify_sms(
        phone,
        f'CampusIQ: Visitor "{visitor_name}" has arrived. Purpose: {purpose}. Please check the front desk.',
    )
