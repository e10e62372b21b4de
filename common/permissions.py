from rest_framework import permissions

from apps.accounts.models import Role


class HasRole(permissions.BasePermission):
    """
    Allow authenticated users whose role is in `allowed_roles`.
    Subclasses only set the tuple.
    """
    allowed_roles = ()
    message = "You do not have permission to perform this action"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) in self.allowed_roles


class IsCustomer(HasRole):
    allowed_roles = (Role.CUSTOMER,)


class IsStoreOwner(HasRole):
    allowed_roles = (Role.STORE_OWNER,)


class IsAdmin(HasRole):
    allowed_roles = (Role.ADMIN,)


class IsAdminOrDelivery(HasRole):
    allowed_roles = (Role.ADMIN, Role.DELIVERY)


class IsCustomerOrAdmin(HasRole):
    allowed_roles = (Role.CUSTOMER, Role.ADMIN)
