"""
Accounts views with JWT-based auth.

- Register & Login issue SimpleJWT tokens (access + refresh).
- /auth/me returns and updates the caller's profile and address book.
- Admin user management: list, suspend, reactivate.
"""
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from common.permissions import IsAdmin
from common.responses import success

from .models import AuditLog, User
from .serializers import (
    AdminUserSerializer,
    AuditLogSerializer,
    LoginSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserStatusSerializer,
)


# -----------------------------
# JWT helpers
# -----------------------------
def issue_tokens_for_user(user: User) -> dict:
    refresh = RefreshToken.for_user(user)
    refresh["role"] = user.role
    return {
        "access": str(refresh.access_token),
        "refresh": str(refresh),
        "token_type": "Bearer",
    }


# -----------------------------
# Auth endpoints: Register/Login
# -----------------------------
@extend_schema(
    summary="Register a new account (returns JWT)",
    request=UserCreateSerializer,
    responses={201: OpenApiResponse(response=UserSerializer)},
    tags=["Auth"],
)
class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        payload = {"user": UserSerializer(user).data, **issue_tokens_for_user(user)}
        return success(payload, message="Registration successful", status=status.HTTP_201_CREATED)


@extend_schema(
    summary="Login (email + password) -> returns JWT",
    request=LoginSerializer,
    tags=["Auth"],
)
class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        tokens = issue_tokens_for_user(user)

        AuditLog.log(actor=user, action="user.login", meta={"ip": request.META.get("REMOTE_ADDR")})
        return success({"user": UserSerializer(user).data, **tokens}, message="Login successful")


@extend_schema(summary="Current user profile", responses=UserSerializer, tags=["Auth"])
class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return success(UserSerializer(request.user).data)

    @extend_schema(request=UserSerializer, responses=UserSerializer)
    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success(serializer.data, message="Profile updated")


# -----------------------------
# Admin: users
# -----------------------------
@extend_schema_view(
    list=extend_schema(summary="List users", tags=["Admin: Users"]),
    retrieve=extend_schema(summary="User detail", tags=["Admin: Users"]),
)
class AdminUserViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = User.objects.all().order_by("-created_at")
    serializer_class = AdminUserSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("role", "status")
    search_fields = ("email", "name", "phone")
    ordering_fields = ("created_at", "email")

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(self.get_object()).data)

    @extend_schema(summary="Suspend a user", request=UserStatusSerializer, tags=["Admin: Users"])
    @action(detail=True, methods=["post"])
    def suspend(self, request, pk=None):
        user = self.get_object()
        data = UserStatusSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        user.suspend(reason=data.validated_data["reason"])
        AuditLog.log(request.user, "user.suspend", {"user_id": str(user.id), "reason": user.suspended_reason})
        return success(self.get_serializer(user).data, message="User suspended")

    @extend_schema(summary="Reactivate a user", request=None, tags=["Admin: Users"])
    @action(detail=True, methods=["post"])
    def reactivate(self, request, pk=None):
        user = self.get_object()
        user.reactivate()
        AuditLog.log(request.user, "user.reactivate", {"user_id": str(user.id)})
        return success(self.get_serializer(user).data, message="User reactivated")


@extend_schema_view(list=extend_schema(summary="Audit trail", tags=["Admin: Users"]))
class AuditLogViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    queryset = AuditLog.objects.all().order_by("-created_at")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("action", "actor_id")
