"""
Role-based access control for DukaBook stores
"""
from functools import wraps
from django.contrib.auth.decorators import login_required
from django.http import HttpResponseForbidden, JsonResponse
from django.contrib.auth.models import Group
from rest_framework.permissions import BasePermission
from .models import Profile, Store


ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
ROLE_STORE_OWNER = 'STORE_OWNER'
ROLE_ADMIN = 'ADMIN'
ROLE_STAFF = 'STAFF'

MANAGER_ROLES = (ROLE_STORE_OWNER, ROLE_ADMIN)

# Define role hierarchy and permissions
ROLE_PERMISSIONS = {
    'SUPER_ADMIN': ['CONSOLE', 'POS', 'INVENTORY', 'ANALYTICS', 'DEBTORS', 'SALES', 'MPESA', 'BILLING', 'REPORTS', 'SETTINGS'],
    'STORE_OWNER': ['POS', 'INVENTORY', 'ANALYTICS', 'DEBTORS', 'SALES', 'MPESA', 'BILLING', 'REPORTS', 'SETTINGS'],
    'ADMIN': ['POS', 'INVENTORY', 'ANALYTICS', 'DEBTORS', 'SALES', 'MPESA', 'REPORTS'],
    'STAFF': ['POS', 'SALES', 'DEBTORS'],
}

# App to permission mapping
APP_PERMISSIONS = {
    'pos': 'POS',
    'inventory': 'INVENTORY',
    'analytics': ['ANALYTICS', 'CONSOLE'],
    'debtors': 'DEBTORS',
    'billing': ['BILLING', 'CONSOLE'],
}


def get_user_role(user):
    """Get user's role from Profile"""
    if user.is_superuser:
        return ROLE_SUPER_ADMIN
    try:
        return Profile.objects.get(user=user).role
    except Profile.DoesNotExist:
        return ROLE_STAFF  # Default role


def get_request_role(request):
    """
    Role for this request. Entering the owner PIN on a shared till
    elevates the session to STORE_OWNER for the entered store.
    """
    role = get_user_role(request.user)
    if role in (ROLE_SUPER_ADMIN, ROLE_STORE_OWNER):
        return role
    if request.session.get('owner_mode') and request.session.get('store_id'):
        return ROLE_STORE_OWNER
    return role


def get_current_store(request):
    """
    Resolve the store a request acts on: an explicit store_id for a
    SuperAdmin, then the store entered by access code, then the
    user's own store.
    """
    if not request.user.is_authenticated:
        return None

    if get_user_role(request.user) == ROLE_SUPER_ADMIN:
        store_id = request.GET.get('store_id') or request.session.get('store_id')
        if store_id:
            return Store.objects.filter(pk=store_id).first()

    session_store = request.session.get('store_id')
    if session_store:
        store = Store.objects.filter(pk=session_store, is_active=True).first()
        if store:
            return store

    profile = Profile.objects.filter(user=request.user).select_related('store').first()
    return profile.store if profile else None


def user_has_permission(user, permission, role=None):
    """Check if user has specific permission"""
    role = role or get_user_role(user)
    return permission in ROLE_PERMISSIONS.get(role, [])


def _deny(request, message):
    if request.headers.get('x-requested-with') == 'XMLHttpRequest' or \
            'application/json' in request.headers.get('accept', '') or \
            request.content_type == 'application/json':
        return JsonResponse({'success': False, 'error': message}, status=403)
    return HttpResponseForbidden(message)


def require_role(*allowed_roles):
    """
    Decorator to restrict view access by role. SuperAdmins always pass.
    Usage: @require_role('STORE_OWNER', 'ADMIN')
    """
    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapper(request, *args, **kwargs):
            user_role = get_request_role(request)

            if user_role != ROLE_SUPER_ADMIN and user_role not in allowed_roles:
                return _deny(request, f'Access denied. Required role(s): {", ".join(allowed_roles)}')

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def require_permission(*permissions):
    """
    Decorator to restrict view access by permission.
    Usage: @require_permission('ANALYTICS', 'REPORTS')
    """
    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapper(request, *args, **kwargs):
            role = get_request_role(request)
            if not any(user_has_permission(request.user, p, role) for p in permissions):
                return _deny(request, f'Access denied. Required permission(s): {", ".join(permissions)}')

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def require_store(view_func):
    """Resolve the current store into request.store or refuse the request."""
    @wraps(view_func)
    @login_required
    def wrapper(request, *args, **kwargs):
        store = get_current_store(request)
        if store is None:
            return JsonResponse({'success': False, 'error': 'No store selected. Enter a store access code first.'}, status=400)
        if store.is_suspended and get_user_role(request.user) != ROLE_SUPER_ADMIN:
            return JsonResponse({'success': False, 'error': f'Store suspended: {store.suspension_reason}'}, status=403)
        request.store = store
        return view_func(request, *args, **kwargs)
    return wrapper


class HasStoreRole(BasePermission):
    """
    DRF permission reading `allowed_roles` from the view.
    Views without the attribute only need an authenticated user.
    """
    message = 'Access denied for your role.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        allowed_roles = getattr(view, 'allowed_roles', None)
        if not allowed_roles:
            return True
        role = get_request_role(request)
        return role == ROLE_SUPER_ADMIN or role in allowed_roles


class IsSuperAdmin(BasePermission):
    message = 'Only the platform SuperAdmin can do this.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated
                    and get_user_role(request.user) == ROLE_SUPER_ADMIN)


class RoleRequiredMiddleware:
    """
    Middleware to enforce app-level access control based on user roles
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.user.is_authenticated and not request.user.is_superuser:
            app_name = request.path.strip('/').split('/')[0]
            required_permission = APP_PERMISSIONS.get(app_name)

            if required_permission:
                if not isinstance(required_permission, list):
                    required_permission = [required_permission]
                role = get_request_role(request)
                has_access = any(
                    user_has_permission(request.user, perm, role)
                    for perm in required_permission
                )

                if not has_access:
                    return _deny(request, f'You do not have permission to access {app_name}.')

        return self.get_response(request)


def create_default_roles():
    """
    Create one auth group per role.
    """
    for role, _ in Profile.ROLE_CHOICES:
        Group.objects.get_or_create(name=role)
