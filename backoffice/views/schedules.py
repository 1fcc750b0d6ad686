"""
Staff schedule views.

Receptionists and administrators maintain the weekly hours of doctors
and nurses; staff members may read their own week.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.data_access import get_data_access
from backoffice.exceptions import ScheduleValidationError
from backoffice.models import User
from backoffice.permissions import IsSchedulingStaff, SCHEDULING_ROLES, has_role
from backoffice.serializers.schedules import (
    ScheduleQuerySerializer,
    SlotsQuerySerializer,
    WeekSerializer,
    day_payload,
)
from backoffice.services import schedules
from backoffice.services.audit import log_action


def _staff_or_404(staff_id: int) -> User:
    user = User.objects.filter(id=staff_id).first()
    if not user:
        raise NotFound('staff member not found')
    return user


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def staff_schedule(request, staff_id: int):
    q = ScheduleQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    staff_type = q.validated_data['type']
    is_scheduler = has_role(request.user, SCHEDULING_ROLES)
    if not is_scheduler and not (request.method == 'GET' and request.user.id == staff_id):
        raise PermissionDenied('not allowed to manage this schedule')
    _staff_or_404(staff_id)
    store = get_data_access()

    if request.method == 'GET':
        week = schedules.load_week(store, staff_id, staff_type)
        return Response({
            'ok': True,
            'data': [day_payload(d) for d in week],
            'summary': schedules.working_days_summary(week),
        })

    s = WeekSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    week = s.week()
    try:
        saved = schedules.save_week(store, staff_id, staff_type, week)
    except ScheduleValidationError as e:
        v = e.violation
        return Response({'ok': False, 'detail': v.message, 'dayOfWeek': v.day_index, 'reason': v.reason}, status=400)
    log_action(user=request.user, action='schedule_save', object_type='staff', object_id=staff_id,
               detail={'staffType': staff_type, 'days': [r['day_of_week'] for r in saved]})
    return Response({
        'ok': True,
        'data': [day_payload(d) for d in schedules.load_week(store, staff_id, staff_type)],
        'summary': schedules.working_days_summary(week),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSchedulingStaff])
def apply_weekdays(request):
    """Return the submitted week with Monday's hours copied to Monday-Friday."""
    s = WeekSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    week = schedules.apply_monday_to_weekdays(s.week())
    return Response({'ok': True, 'data': [day_payload(d) for d in week]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def staff_slots(request, staff_id: int):
    """Bookable slots of a doctor on ``date``, or the verdict for one ``time``."""
    q = SlotsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    _staff_or_404(staff_id)
    store = get_data_access()
    on = q.validated_data['date']
    at = q.validated_data.get('time')
    if at is not None:
        return Response({'ok': True, 'data': schedules.is_time_slot_available(store, staff_id, on, at)})
    return Response({'ok': True, 'data': schedules.available_time_slots(store, staff_id, on)})
