"""
Read-only aggregations behind the dashboard and the attendance report.
"""
import calendar
from datetime import timedelta
from itertools import chain

from django.db.models import Count, Q
from django.utils import timezone

from accounts.models import Department, User
from approvals.models import Approval, LeaveRequest, PermissionRequest, RequestStatus, WorkLetter
from approvals.workflow import pending_for, urgency
from attendance.geo import haversine_distance
from attendance.models import Attendance
from attendance.services import working_minutes_between
from hrms.helpers import count_work_days

PRESENT_STATUSES = (Attendance.Status.PRESENT, Attendance.Status.LATE)
TREND_DAYS = 7
RECENT_REQUESTS = 5
PENDING_PREVIEW = 10


def attendance_rate(present, total):
    if not total:
        return 0.0
    return round(present / total * 100, 2)


def today_attendance(user, now):
    today = timezone.localdate(now)
    record = (
        Attendance.objects.select_related("office_location")
        .filter(user=user, attendance_date=today)
        .first()
    )
    if record is None:
        return {"status": "not_checked_in", "working_minutes": 0}

    if record.check_in_time and record.check_out_time:
        state = "checked_out"
        minutes = record.working_minutes
    elif record.check_in_time:
        state = "checked_in"
        minutes = working_minutes_between(record.check_in_time, now)
    elif record.status == Attendance.Status.ABSENT:
        state = "absent"
        minutes = 0
    else:
        state = "not_checked_in"
        minutes = 0

    office = None
    if record.office_location is not None:
        office = {"id": record.office_location.id, "name": record.office_location.name, "distance": None}
        if record.check_in_latitude is not None and record.check_in_longitude is not None:
            office["distance"] = round(
                haversine_distance(
                    float(record.check_in_latitude),
                    float(record.check_in_longitude),
                    float(record.office_location.latitude),
                    float(record.office_location.longitude),
                ),
                2,
            )

    return {
        "status": state,
        "attendance_status": record.status,
        "check_in_time": record.check_in_time,
        "check_out_time": record.check_out_time,
        "working_minutes": minutes,
        "is_late": record.status == Attendance.Status.LATE,
        "is_valid_location": record.is_valid_location,
        "office_location": office,
    }


def monthly_attendance(user, today):
    start = today.replace(day=1)
    end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    counts = dict(
        Attendance.objects.filter(user=user, attendance_date__range=(start, end))
        .values_list("status")
        .order_by()
        .annotate(n=Count("id"))
    )
    work_days = count_work_days(start, end)
    present = sum(counts.get(s, 0) for s in PRESENT_STATUSES)
    return {
        "start_date": start,
        "end_date": end,
        "work_days": work_days,
        "present_days": present,
        "absent_days": counts.get(Attendance.Status.ABSENT, 0),
        "late_days": counts.get(Attendance.Status.LATE, 0),
        "attendance_rate": attendance_rate(present, work_days),
    }


def attendance_trend(user, today):
    since = today - timedelta(days=TREND_DAYS - 1)
    records = Attendance.objects.filter(user=user, attendance_date__range=(since, today)).order_by("attendance_date")
    return [
        {
            "date": r.attendance_date,
            "status": r.status,
            "check_in_time": r.check_in_time,
            "check_out_time": r.check_out_time,
            "working_minutes": r.working_minutes,
        }
        for r in records
    ]


def request_stats(user):
    documents = list(
        chain.from_iterable(
            model.objects.filter(user=user) for model in (LeaveRequest, PermissionRequest, WorkLetter)
        )
    )
    by_status = {s: 0 for s in RequestStatus.values}
    for document in documents:
        by_status[document.status] += 1

    documents.sort(key=lambda d: (d.created_at, d.pk), reverse=True)
    return {
        "pending": by_status[RequestStatus.PENDING],
        "approved": by_status[RequestStatus.APPROVED],
        "rejected": by_status[RequestStatus.REJECTED],
        "cancelled": by_status[RequestStatus.CANCELLED],
        "total": len(documents),
        "recent": [
            {
                "document_type": d.document_type,
                "id": d.pk,
                "summary": d.summary,
                "status": d.status,
                "submitted_at": d.submitted_at,
            }
            for d in documents[:RECENT_REQUESTS]
        ],
    }


def approval_stats(user, now):
    today = timezone.localdate(now)
    pending = pending_for(user)
    decided_today = Approval.objects.filter(approver=user).filter(
        Q(approved_at__date=today) | Q(rejected_at__date=today)
    )
    return {
        "pending_count": len(pending),
        "decided_today": decided_today.count(),
        "pending": [
            {
                "document_type": d.document_type,
                "id": d.pk,
                "user_name": d.user.display_name,
                "department": d.user.department.name if d.user.department_id else None,
                "summary": d.summary,
                "submitted_at": d.submitted_at,
                "urgency": urgency(d.submitted_at, now),
            }
            for d in pending[:PENDING_PREVIEW]
        ],
    }


def team_stats(department_id, today):
    members = list(
        User.objects.filter(department_id=department_id, status=User.Status.ACTIVE).order_by("username")
    )
    records = {
        r.user_id: r
        for r in Attendance.objects.filter(user__in=members, attendance_date=today)
    }
    statuses = [r.status for r in records.values()]
    return {
        "total_members": len(members),
        "present_today": sum(1 for s in statuses if s in PRESENT_STATUSES),
        "absent_today": statuses.count(Attendance.Status.ABSENT),
        "on_leave_today": statuses.count(Attendance.Status.LEAVE),
        "late_today": statuses.count(Attendance.Status.LATE),
        "members": [
            {
                "user": m.pk,
                "name": m.display_name,
                "status": records[m.pk].status if m.pk in records else Attendance.Status.ABSENT,
                "check_in_time": records[m.pk].check_in_time if m.pk in records else None,
            }
            for m in members
        ],
    }


def company_stats(today):
    active_users = User.objects.filter(status=User.Status.ACTIVE)
    todays = Attendance.objects.filter(attendance_date=today)
    present_today = todays.filter(status__in=PRESENT_STATUSES).count()

    departments = Department.objects.filter(is_active=True).annotate(
        total=Count("members", filter=Q(members__status=User.Status.ACTIVE), distinct=True),
        present=Count(
            "members__attendance_records",
            filter=Q(
                members__status=User.Status.ACTIVE,
                members__attendance_records__attendance_date=today,
                members__attendance_records__status__in=PRESENT_STATUSES,
            ),
            distinct=True,
        ),
    )

    since = today - timedelta(days=TREND_DAYS - 1)
    daily = {}
    for day, record_status, n in (
        Attendance.objects.filter(attendance_date__range=(since, today))
        .values_list("attendance_date", "status")
        .order_by()
        .annotate(n=Count("id"))
    ):
        daily.setdefault(day, {})[record_status] = n

    trend = []
    for offset in range(TREND_DAYS):
        day = since + timedelta(days=offset)
        counts = daily.get(day, {})
        present = sum(counts.get(s, 0) for s in PRESENT_STATUSES)
        absent = counts.get(Attendance.Status.ABSENT, 0)
        trend.append({
            "date": day,
            "present": present,
            "absent": absent,
            "attendance_rate": attendance_rate(present, present + absent),
        })

    return {
        "total_employees": active_users.count(),
        "present_today": present_today,
        "absent_today": todays.filter(status=Attendance.Status.ABSENT).count(),
        "on_leave_today": todays.filter(status=Attendance.Status.LEAVE).count(),
        "departments": [
            {
                "id": d.pk,
                "name": d.name,
                "total_employees": d.total,
                "present_today": d.present,
                "attendance_rate": attendance_rate(d.present, d.total),
            }
            for d in departments
        ],
        "trend": trend,
    }


def dashboard(user, include_team=False, include_company=False, now=None):
    now = now or timezone.now()
    today = timezone.localdate(now)

    data = {
        "attendance": {
            "today": today_attendance(user, now),
            "monthly": monthly_attendance(user, today),
            "trend": attendance_trend(user, today),
        },
        "requests": request_stats(user),
    }
    if user.can_approve:
        data["approvals"] = approval_stats(user, now)
    if include_team and user.department_id:
        data["team"] = team_stats(user.department_id, today)
    if include_company and user.is_admin_role:
        data["company"] = company_stats(today)
    return data


def report_queryset(user, start, end, department_id=None, user_id=None):
    """
    Attendance records between ``start`` and ``end`` visible to ``user``.
    Admin roles see everybody, managers and supervisors their department.
    """
    qs = Attendance.objects.select_related("user", "user__department", "office_location").filter(
        attendance_date__range=(start, end)
    )
    if not user.is_admin_role:
        if not user.department_id:
            return qs.none()
        qs = qs.filter(user__department_id=user.department_id)
    if department_id:
        qs = qs.filter(user__department_id=department_id)
    if user_id:
        qs = qs.filter(user_id=user_id)
    return qs.order_by("attendance_date", "user__username")
