import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from audit.services import audit_request, build_changes
from notifications.services import (
    emit_activity,
    notify_email_verification,
    notify_password_reset,
    notify_welcome,
)
from tenants.limits import check_school_limit
from tenants.mixins import SchoolScopedViewMixin

from .permissions import HasModulePermission
from .roles import get_permissions
from .serializers import (
    CampusTokenObtainPairSerializer,
    ChangePasswordSerializer,
    EmailSerializer,
    LinkPasswordSerializer,
    LinkSerializer,
    MeUpdateSerializer,
    RegisterSerializer,
    TeacherSerializer,
    UserSerializer,
    UserWriteSerializer,
)
from .tokens import (
    activation_token,
    build_link,
    check_link,
    email_verification_token,
    password_reset_token,
)

logger = logging.getLogger(__name__)

User = get_user_model()

USER_AUDIT_FIELDS = ['email', 'name', 'role', 'phone', 'status', 'is_active', 'allowed_modules']
TEACHER_AUDIT_FIELDS = USER_AUDIT_FIELDS + ['subject', 'classes', 'salary_per_day', 'joining_date']


def _token_payload(user):
    refresh = CampusTokenObtainPairSerializer.get_token(user)
    return {'refresh': str(refresh), 'access': str(refresh.access_token)}


class RegisterView(APIView):
    """POST /api/auth/register/ - новая школа (trial) + администратор."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'register'

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f'School registered: {user.school.slug} by {user.email}')

        audit_request(request, 'create', 'school', user.school.pk, school=user.school, user=user,
                      metadata={'plan': user.school.plan, 'trial_ends_at': user.school.trial_ends_at.isoformat()})
        notify_welcome(user, user.school, verify_url=build_link('verify-email', user, email_verification_token))

        return Response({
            **_token_payload(user),
            'user': UserSerializer(user).data,
            'school': user.school.to_frontend_config(),
        }, status=status.HTTP_201_CREATED)


class LoginView(TokenObtainPairView):
    """POST /api/auth/login/ - JWT пара, lockout, отдельный throttle."""
    serializer_class = CampusTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.user
        audit_request(request, 'login', 'user', user.pk, user=user, school=user.school)
        return Response({
            **serializer.validated_data,
            'user': UserSerializer(user).data,
        })


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        audit_request(request, 'logout', 'user', request.user.pk)
        return Response({'detail': 'Logged out'})


class MeView(APIView):
    """GET|PATCH /api/auth/me/"""
    permission_classes = [IsAuthenticated]

    def _payload(self, user):
        return {
            **UserSerializer(user).data,
            'permissions': get_permissions(user.role),
            'school_config': user.school.to_frontend_config() if user.school else None,
        }

    def get(self, request):
        return Response(self._payload(request.user))

    def patch(self, request):
        serializer = MeUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(self._payload(request.user))


class ChangePasswordView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save(update_fields=['password'])
        audit_request(request, 'update', 'user', request.user.pk, metadata={'field': 'password'})
        return Response({'detail': 'Password changed', **_token_payload(request.user)})


FORGOT_PASSWORD_MESSAGE = 'If an account with that email exists, a password reset link has been sent.'
RESEND_VERIFICATION_MESSAGE = 'If the account exists and is not yet verified, a verification link has been sent.'


class ForgotPasswordView(APIView):
    """
    POST /api/auth/forgot-password/ {email}
    Ответ одинаковый для любого email. Приглашённым без пароля уходит новая ссылка активации.
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'password_reset'

    def post(self, request):
        serializer = EmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = User.objects.select_related('school').filter(
            email__iexact=serializer.validated_data['email'], is_active=True,
        ).first()

        if user is not None and user.status == User.Status.PENDING and user.school is not None:
            notify_welcome(user, user.school, activation_url=build_link('activate', user, activation_token))
            logger.info(f'Activation link re-sent to user {user.pk}')
        elif user is not None:
            notify_password_reset(user, build_link('reset-password', user, password_reset_token))
            audit_request(request, 'update', 'user', user.pk, user=user, school=user.school,
                          metadata={'event': 'password_reset_requested'})
            logger.info(f'Password reset link sent to user {user.pk}')
        return Response({'detail': FORGOT_PASSWORD_MESSAGE})


class ResetPasswordView(APIView):
    """POST /api/auth/reset-password/ {uid, token, password}"""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'password_reset'

    def post(self, request):
        serializer = LinkPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = check_link(data['uid'], data['token'], password_reset_token)
        if user is None or not user.is_active:
            return Response(
                {'detail': 'Invalid or expired reset link. Please request a new one.'},
                status=status.HTTP_400_BAD_REQUEST,
            )

        user.set_password(data['password'])
        user.failed_login_attempts = 0
        user.locked_until = None
        user.save(update_fields=['password', 'failed_login_attempts', 'locked_until'])
        audit_request(request, 'update', 'user', user.pk, user=user, school=user.school,
                      changes={'password': {'old': '***', 'new': '***'}}, metadata={'event': 'password_reset'})
        return Response({'detail': 'Password reset successfully! You can now log in with your new password.'})


class VerifyEmailView(APIView):
    """POST /api/auth/verify-email/ {uid, token}"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = LinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = check_link(serializer.validated_data['uid'], serializer.validated_data['token'],
                          email_verification_token)
        if user is None:
            return Response(
                {'detail': 'Invalid or expired verification link.'},
                status=status.HTTP_400_BAD_REQUEST,
            )

        user.email_verified = True
        user.save(update_fields=['email_verified'])
        audit_request(request, 'update', 'user', user.pk, user=user, school=user.school,
                      changes={'email_verified': {'old': False, 'new': True}})
        return Response({'detail': 'Email verified successfully.'})


class ResendVerificationView(APIView):
    """
    POST /api/auth/resend-verification/
    Авторизованный пользователь - себе; иначе по {email}. Ответ не выдаёт, есть ли аккаунт.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'password_reset'

    def post(self, request):
        if request.user.is_authenticated:
            user = request.user
        else:
            serializer = EmailSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            user = User.objects.filter(email__iexact=serializer.validated_data['email'], is_active=True).first()

        if user is not None and not user.email_verified:
            notify_email_verification(user, build_link('verify-email', user, email_verification_token))
        return Response({'detail': RESEND_VERIFICATION_MESSAGE})


class ActivateView(APIView):
    """
    GET  /api/auth/activate/?uid=&token= - проверить ссылку приглашения
    POST /api/auth/activate/ {uid, token, password} - задать пароль и активировать
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'password_reset'

    invalid_message = 'Invalid or expired activation link.'

    @staticmethod
    def _pending_user(uid, token):
        user = check_link(uid, token, activation_token)
        if user is None or user.status != User.Status.PENDING:
            return None
        return user

    def get(self, request):
        user = self._pending_user(request.query_params.get('uid'), request.query_params.get('token'))
        if user is None:
            return Response({'valid': False, 'detail': self.invalid_message}, status=status.HTTP_400_BAD_REQUEST)
        return Response({
            'valid': True,
            'data': {
                'name': user.name,
                'email': user.email,
                'role': user.role,
                'school_name': user.school.name if user.school else None,
            },
        })

    def post(self, request):
        serializer = LinkPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = self._pending_user(data['uid'], data['token'])
        if user is None:
            return Response({'detail': self.invalid_message}, status=status.HTTP_400_BAD_REQUEST)

        user.set_password(data['password'])
        user.status = User.Status.ACTIVE
        user.is_active = True
        user.email_verified = True
        user.save(update_fields=['password', 'status', 'is_active', 'email_verified'])
        logger.info(f'User {user.pk} activated')
        audit_request(request, 'update', 'user_activation', user.pk, user=user, school=user.school,
                      changes={'status': {'old': User.Status.PENDING, 'new': User.Status.ACTIVE}})
        return Response({'detail': 'Account activated successfully! You can now log in.'})


class UserViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
    """
    /api/users/ - пользователи школы (users:*).
    DELETE деактивирует пользователя (is_active=False), строки не удаляются.
    """
    queryset = User.objects.all()
    permission_classes = [HasModulePermission]
    permission_module = 'users'
    audit_entity = 'user'
    audit_fields = USER_AUDIT_FIELDS

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return UserSerializer
        return UserWriteSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get('role'):
            qs = qs.filter(role=params['role'])
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('is_active') in ('true', 'false'):
            qs = qs.filter(is_active=params['is_active'] == 'true')
        search = params.get('search', '').strip()
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search) | Q(phone__icontains=search))
        return qs.order_by('name', 'email')

    def _save_new(self, serializer, **extra):
        """Без пароля пользователь создаётся в статусе pending и получает ссылку активации."""
        school = self.require_school()
        invited = not serializer.validated_data.get('password')
        if invited:
            extra['status'] = User.Status.PENDING
        user = serializer.save(school=school, **extra)
        audit_request(self.request, 'create', self.audit_entity, user.pk,
                      metadata={'role': user.role, 'email': user.email, 'invited': invited})
        if invited:
            notify_welcome(user, school, activation_url=build_link('activate', user, activation_token))
        else:
            notify_welcome(user, school, verify_url=build_link('verify-email', user, email_verification_token))
        return user

    def perform_create(self, serializer):
        self._save_new(serializer)

    def perform_update(self, serializer):
        old = {field: getattr(serializer.instance, field) for field in self.audit_fields}
        user = serializer.save()
        changes = build_changes(old, user, self.audit_fields)
        if changes:
            audit_request(self.request, 'update', self.audit_entity, user.pk, changes=changes)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response(UserSerializer(serializer.instance).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        response.data = UserSerializer(self.get_object()).data
        return response

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            return Response({'detail': 'You cannot deactivate your own account.'}, status=status.HTTP_400_BAD_REQUEST)
        user.deactivate()
        extra = self.on_deactivate(user)
        audit_request(request, 'delete', self.audit_entity, user.pk, metadata={'soft': True, **extra})
        return Response({'detail': f'{user.get_full_name()} deactivated', 'id': user.pk, **extra})

    def on_deactivate(self, user):
        return {}


class TeacherViewSet(UserViewSet):
    """
    /api/teachers/ - учителя школы (teachers:*).
    Создание учитывает лимит плана max_teachers.
    Деактивация снимает учителя с роли наблюдателя на запланированных экзаменах.
    """
    permission_module = 'teachers'
    audit_entity = 'teacher'
    audit_fields = TEACHER_AUDIT_FIELDS

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return UserSerializer
        return TeacherSerializer

    def get_queryset(self):
        qs = super().get_queryset().filter(role=User.Role.TEACHER)
        subject = self.request.query_params.get('subject')
        if subject:
            qs = qs.filter(subject__iexact=subject)
        return qs

    def perform_create(self, serializer):
        school = self.require_school()
        check_school_limit(school, 'max_teachers')
        teacher = self._save_new(serializer, role=User.Role.TEACHER)
        emit_activity(
            school,
            title='New teacher added',
            message=f'{teacher.name} joined as {teacher.subject or "teacher"}',
            module='teachers', entity_id=teacher.pk, action_url='/teachers',
            actor=self.request.user,
        )

    def on_deactivate(self, user):
        from exams.models import Exam

        unassigned = Exam.objects.filter(
            school=user.school, invigilator=user, status=Exam.Status.SCHEDULED,
        ).update(invigilator=None, invigilator_name='')
        if unassigned:
            logger.info(f'Teacher {user.pk} unassigned from {unassigned} scheduled exam(s)')
        return {'exams_unassigned': unassigned}
