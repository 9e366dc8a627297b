from django.contrib.auth.models import Group, Permission

from .models import User

ACTIONS = ["add", "change", "delete", "view"]

# (app_label, model) pairs covered by the role groups
MODELS = [
    ("accounts", "user"),
    ("accounts", "department"),
    ("attendance", "attendance"),
    ("attendance", "officelocation"),
    ("approvals", "leaverequest"),
    ("approvals", "permissionrequest"),
    ("approvals", "workletter"),
    ("approvals", "approval"),
    ("notifications", "notification"),
    ("audit", "auditlog"),
]

REQUEST_MODELS = ["leaverequest", "permissionrequest", "workletter"]


def _perms(app_label, model, actions):
    return list(
        Permission.objects.filter(
            content_type__app_label=app_label,
            content_type__model=model,
            codename__in=[f"{a}_{model}" for a in actions],
        )
    )


def _role_permissions(role):
    perms = []
    if role == User.Role.SUPER_ADMIN:
        for app_label, model in MODELS:
            perms += _perms(app_label, model, ACTIONS)
        return perms

    if role in (User.Role.ADMIN, User.Role.HR_ADMIN):
        for app_label, model in MODELS:
            if model == "officelocation":
                perms += _perms(app_label, model, ["view"])
            else:
                perms += _perms(app_label, model, ACTIONS)
        return perms

    # everybody else: own requests, own attendance, read-only lookups
    perms += _perms("accounts", "department", ["view"])
    perms += _perms("attendance", "officelocation", ["view"])
    perms += _perms("attendance", "attendance", ["view", "add"])
    perms += _perms("notifications", "notification", ["view", "change"])
    for model in REQUEST_MODELS:
        perms += _perms("approvals", model, ["view", "add"])

    if role in User.DEPARTMENT_APPROVER_ROLES:
        perms += _perms("attendance", "attendance", ["change"])
        perms += _perms("approvals", "approval", ["view", "add", "change"])
        for model in REQUEST_MODELS:
            perms += _perms("approvals", model, ["change"])
    return perms


def setup_role_groups():
    """
    Create one auth Group per role and (re)assign its model permissions.
    Safe to call repeatedly; permissions not created yet are skipped and
    picked up on the next call.
    """
    counts = {}
    for role in User.Role:
        group, _ = Group.objects.get_or_create(name=role.label)
        perms = _role_permissions(role)
        group.permissions.set(perms)
        counts[role.label] = len(perms)
    return counts


def sync_user_group(user):
    """Keep the user in exactly one role group, the one matching user.role."""
    role_group_names = [role.label for role in User.Role]
    target, _ = Group.objects.get_or_create(name=User.Role(user.role).label)

    stale = user.groups.filter(name__in=role_group_names).exclude(pk=target.pk)
    if stale.exists():
        user.groups.remove(*stale)
    user.groups.add(target)
