from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import AuditLog, Role, User


class AddressSerializer(serializers.Serializer):
    LABELS = ("Home", "Work", "Other")

    label = serializers.ChoiceField(choices=LABELS, default="Home")
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    pincode = serializers.CharField(max_length=12)
    country = serializers.CharField(max_length=100, default="India")


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = (
            "id", "email", "name", "phone", "role", "admin_role", "status",
            "addresses", "created_at", "updated_at",
        )
        read_only_fields = ("id", "email", "role", "admin_role", "status", "created_at", "updated_at")

    def validate_addresses(self, value):
        serializer = AddressSerializer(data=value, many=True)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class UserCreateSerializer(serializers.ModelSerializer):
    SELF_SERVICE_ROLES = (Role.CUSTOMER, Role.STORE_OWNER)

    password = serializers.CharField(write_only=True, required=True, trim_whitespace=False)
    password2 = serializers.CharField(write_only=True, required=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=SELF_SERVICE_ROLES, default=Role.CUSTOMER)

    class Meta:
        model = User
        fields = ("email", "name", "phone", "password", "password2", "role")

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate(self, attrs):
        if attrs.get("password") != attrs.get("password2"):
            raise serializers.ValidationError({"password": "Password fields didn't match."})
        try:
            validate_password(attrs.get("password"))
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"password": list(exc.messages)})
        return attrs

    def create(self, validated_data):
        validated_data.pop("password2", None)
        raw_password = validated_data.pop("password")
        email = validated_data.pop("email")
        try:
            return User.register(email=email, password=raw_password, **validated_data)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.message_dict)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(write_only=True)
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        req = self.context.get("request")
        if hasattr(req, "_request"):
            req = req._request

        user = authenticate(request=req, username=attrs["email"].strip().lower(), password=attrs["password"])
        if user is None:
            raise serializers.ValidationError({"detail": "Invalid email or password."})
        if not user.is_active:
            raise serializers.ValidationError({"detail": "User account is disabled."})
        attrs["user"] = user
        return attrs


class UserStatusSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class AdminUserSerializer(UserSerializer):
    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ("suspended_reason", "is_active", "last_login")
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ("id", "actor_id", "action", "meta", "created_at")
        read_only_fields = fields
