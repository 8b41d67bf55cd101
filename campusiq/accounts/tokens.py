"""
Одноразовые ссылки из писем: сброс пароля, подтверждение email, активация.

Токены stateless (django.contrib.auth.tokens): хэш включает поля, которые
меняются после использования ссылки, поэтому повторно она не сработает.
Срок жизни - PASSWORD_RESET_TIMEOUT.
"""
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import PasswordResetTokenGenerator, default_token_generator
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

User = get_user_model()


class EmailVerificationTokenGenerator(PasswordResetTokenGenerator):
    key_salt = 'accounts.tokens.EmailVerificationTokenGenerator'

    def _make_hash_value(self, user, timestamp):
        return f'{user.pk}{user.email}{user.email_verified}{timestamp}'


class AccountActivationTokenGenerator(PasswordResetTokenGenerator):
    key_salt = 'accounts.tokens.AccountActivationTokenGenerator'

    def _make_hash_value(self, user, timestamp):
        return f'{user.pk}{user.email}{user.status}{user.password}{timestamp}'


password_reset_token = default_token_generator
email_verification_token = EmailVerificationTokenGenerator()
activation_token = AccountActivationTokenGenerator()


def encode_uid(user):
    return urlsafe_base64_encode(force_bytes(user.pk))


def user_from_uid(uid):
    try:
        pk = force_str(urlsafe_base64_decode(uid or ''))
        return User.objects.select_related('school').get(pk=pk)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        return None


def check_link(uid, token, generator):
    """Пользователь по паре uid/token или None, если ссылка неверна / истекла."""
    user = user_from_uid(uid)
    if user is None or not generator.check_token(user, token or ''):
        return None
    return user


def build_link(path, user, generator):
    """{FRONTEND_URL}/<path>?uid=...&token=..."""
    return f'{settings.FRONTEND_URL}/{path}?uid={encode_uid(user)}&token={generator.make_token(user)}'
