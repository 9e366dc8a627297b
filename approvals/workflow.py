"""
Request lifecycle: submit, approve, reject and cancel.

Only ``pending`` requests move, and only once:
pending -> approved | rejected | cancelled.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from accounts.models import User
from audit.services import log_action
from notifications.models import Notification
from notifications.services import notify

from .models import Approval, LeaveRequest, PermissionRequest, RequestStatus, WorkLetter

logger = logging.getLogger(__name__)

REQUEST_MODELS = (LeaveRequest, PermissionRequest, WorkLetter)
TABLE_NAMES = {
    LeaveRequest: "leave_requests",
    PermissionRequest: "permission_requests",
    WorkLetter: "work_letters",
}
AUDIT_FIELDS = ["status", "current_approver_id", "rejection_reason", "cancellation_reason"]

HIGH_URGENCY_HOURS = 48
MEDIUM_URGENCY_HOURS = 24


def resolve_approver(user):
    """
    Head of the requester's department, walking up to parent departments
    when the requester heads their own. None when nobody qualifies.
    """
    department = user.department
    seen = set()
    while department is not None and department.pk not in seen:
        seen.add(department.pk)
        head = department.head
        if head is not None and head.pk != user.pk and head.status == User.Status.ACTIVE:
            return head
        department = department.parent
    return None


def can_decide(user, document):
    if user.pk == document.user_id:
        return False
    if user.is_admin_role:
        return True
    if document.current_approver_id == user.pk:
        return True
    return bool(
        user.is_department_approver
        and user.department_id
        and user.department_id == document.user.department_id
    )


def decidable_filter(user):
    """Q over request models matching documents ``user`` may decide."""
    if user.is_admin_role:
        q = Q()
    elif user.is_department_approver and user.department_id:
        q = Q(user__department_id=user.department_id) | Q(current_approver=user)
    else:
        q = Q(current_approver=user)
    return q & ~Q(user=user)


def pending_for(user):
    """Pending documents ``user`` may decide, oldest first, across all request types."""
    documents = []
    for model in REQUEST_MODELS:
        qs = (
            model.objects.filter(status=RequestStatus.PENDING)
            .filter(decidable_filter(user))
            .select_related("user", "user__department")
        )
        documents.extend(qs)
    documents.sort(key=lambda d: (d.submitted_at, d.pk))
    return documents


def urgency(submitted_at, now=None):
    now = now or timezone.now()
    hours = (now - submitted_at).total_seconds() / 3600
    if hours > HIGH_URGENCY_HOURS:
        return "high"
    if hours > MEDIUM_URGENCY_HOURS:
        return "medium"
    return "low"


def leave_days_taken(user, leave_type, year, exclude_pk=None):
    """(approved, pending) working days of ``leave_type`` starting in ``year``."""
    qs = LeaveRequest.objects.filter(user=user, leave_type=leave_type, start_date__year=year)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    approved = qs.filter(status=RequestStatus.APPROVED).aggregate(n=Sum("total_days"))["n"] or 0
    pending = qs.filter(status=RequestStatus.PENDING).aggregate(n=Sum("total_days"))["n"] or 0
    return approved, pending


def leave_balances(user, year):
    balances = []
    for leave_type in LeaveRequest.LeaveType:
        total = settings.LEAVE_ALLOWANCES.get(leave_type.value)
        approved, pending = leave_days_taken(user, leave_type, year)
        balances.append({
            "leave_type": leave_type.value,
            "label": leave_type.label,
            "total": total,
            "used": approved,
            "pending": pending,
            "remaining": None if total is None else max(total - approved - pending, 0),
        })
    return balances


def _table(document):
    return TABLE_NAMES[type(document)]


def submit(serializer, request):
    """Save a new request from a validated serializer and route it to its approver."""
    user = request.user
    approver = resolve_approver(user)

    with transaction.atomic():
        document = serializer.save(user=user, current_approver=approver, status=RequestStatus.PENDING)
        if approver is not None:
            Approval.objects.create(
                document_type=document.document_type,
                document_id=document.pk,
                approver=approver,
                step_order=1,
            )

    if approver is not None:
        notify(
            approver,
            f"New {document.get_document_type_label().lower()} to review",
            f"{user.display_name} submitted: {document.summary}",
            data={"document_type": document.document_type, "document_id": document.pk},
        )

    log_action(
        request,
        "CREATE",
        _table(document),
        document.pk,
        new_values={"status": document.status, "current_approver_id": document.current_approver_id},
    )
    logger.info(
        "%s %s submitted by user %s, approver %s",
        document.document_type,
        document.pk,
        user.pk,
        approver.pk if approver else None,
    )
    return document


def _locked(document):
    return type(document).objects.select_for_update().select_related("user").get(pk=document.pk)


def _record_decision(document, actor, status, comments, now):
    pending = Approval.objects.filter(
        document_type=document.document_type,
        document_id=document.pk,
        status=Approval.Status.PENDING,
    )
    approval = pending.filter(approver=actor).first()
    if approval is None:
        step = Approval.objects.filter(document_type=document.document_type, document_id=document.pk).count() + 1
        approval = Approval(
            document_type=document.document_type,
            document_id=document.pk,
            approver=actor,
            step_order=step,
        )
    # whoever decides first closes the document; other open steps are void
    pending.exclude(pk=approval.pk).delete()

    approval.status = status
    approval.comments = comments or ""
    if status == Approval.Status.APPROVED:
        approval.approved_at = now
    else:
        approval.rejected_at = now
    approval.save()
    return approval


def decide(document, actor, approve, comments="", request=None, now=None):
    """Approve or reject a pending document on behalf of ``actor``."""
    now = now or timezone.now()
    verb = "approve" if approve else "reject"

    with transaction.atomic():
        document = _locked(document)
        if document.status != RequestStatus.PENDING:
            raise ValidationError({"detail": f"Only pending requests can be {verb}d (current status: {document.status})."})
        if not can_decide(actor, document):
            logger.warning("User %s tried to %s %s %s", actor.pk, verb, document.document_type, document.pk)
            raise PermissionDenied(f"You are not allowed to {verb} this request.")

        old_values = {f: getattr(document, f) for f in AUDIT_FIELDS}
        if approve:
            document.status = RequestStatus.APPROVED
            document.approved_at = now
        else:
            document.status = RequestStatus.REJECTED
            document.rejected_at = now
            document.rejection_reason = comments
        document.save()

        _record_decision(
            document,
            actor,
            Approval.Status.APPROVED if approve else Approval.Status.REJECTED,
            comments,
            now,
        )

    label = document.get_document_type_label()
    if approve:
        notify(
            document.user,
            f"{label} approved",
            f"Your request ({document.summary}) was approved by {actor.display_name}.",
            type=Notification.Type.SUCCESS,
            data={"document_type": document.document_type, "document_id": document.pk},
        )
    else:
        notify(
            document.user,
            f"{label} rejected",
            f"Your request ({document.summary}) was rejected: {comments}",
            type=Notification.Type.ERROR,
            data={"document_type": document.document_type, "document_id": document.pk},
        )

    log_action(
        request if request is not None else actor,
        "APPROVE" if approve else "REJECT",
        _table(document),
        document.pk,
        old_values=old_values,
        new_values={f: getattr(document, f) for f in AUDIT_FIELDS},
    )
    logger.info("%s %s %sd by user %s", document.document_type, document.pk, verb, actor.pk)
    return document


def cancel(document, actor, reason="", request=None, now=None):
    now = now or timezone.now()

    with transaction.atomic():
        document = _locked(document)
        if document.user_id != actor.pk:
            raise PermissionDenied("Only the requester can cancel this request.")
        if document.status != RequestStatus.PENDING:
            raise ValidationError({"detail": f"Only pending requests can be cancelled (current status: {document.status})."})

        old_values = {f: getattr(document, f) for f in AUDIT_FIELDS}
        document.status = RequestStatus.CANCELLED
        document.cancelled_at = now
        document.cancellation_reason = reason or ""
        document.save()

        Approval.objects.filter(
            document_type=document.document_type,
            document_id=document.pk,
            status=Approval.Status.PENDING,
        ).delete()

    if document.current_approver_id:
        notify(
            document.current_approver,
            f"{document.get_document_type_label()} cancelled",
            f"{actor.display_name} cancelled: {document.summary}",
            type=Notification.Type.WARNING,
            data={"document_type": document.document_type, "document_id": document.pk},
        )

    log_action(
        request if request is not None else actor,
        "CANCEL",
        _table(document),
        document.pk,
        old_values=old_values,
        new_values={f: getattr(document, f) for f in AUDIT_FIELDS},
    )
    logger.info("%s %s cancelled by user %s", document.document_type, document.pk, actor.pk)
    return document
