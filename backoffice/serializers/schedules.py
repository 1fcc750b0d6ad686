from rest_framework import serializers

from backoffice.services.schedules import DaySchedule
from .text import clean_text

TIME_FORMATS = ['%H:%M', '%H:%M:%S']


class DayScheduleSerializer(serializers.Serializer):
    dayOfWeek = serializers.IntegerField(min_value=0, max_value=6)
    isAvailable = serializers.BooleanField(default=False)
    startTime = serializers.TimeField(input_formats=TIME_FORMATS, required=False, allow_null=True, default=None)
    endTime = serializers.TimeField(input_formats=TIME_FORMATS, required=False, allow_null=True, default=None)
    slotDuration = serializers.IntegerField(min_value=5, max_value=240, required=False, default=30)
    breakStart = serializers.TimeField(input_formats=TIME_FORMATS, required=False, allow_null=True, default=None)
    breakEnd = serializers.TimeField(input_formats=TIME_FORMATS, required=False, allow_null=True, default=None)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)

    def to_internal_value(self, data):
        # time inputs arrive as '' when cleared
        if hasattr(data, 'items'):
            data = {k: (None if v == '' else v) for k, v in data.items()}
        return super().to_internal_value(data)

    def validate_notes(self, v):
        return clean_text(v) or None

    def validate(self, attrs):
        if attrs.get('isAvailable') and (attrs.get('startTime') is None or attrs.get('endTime') is None):
            raise serializers.ValidationError('working hours are required on available days')
        return attrs


def _fmt(t):
    return t.strftime('%H:%M') if t else None


def to_day(data) -> DaySchedule:
    return DaySchedule(
        day_of_week=data['dayOfWeek'],
        is_available=data['isAvailable'],
        start_time=_fmt(data.get('startTime')) or '09:00',
        end_time=_fmt(data.get('endTime')) or '17:00',
        slot_duration=data.get('slotDuration') or 30,
        break_start=_fmt(data.get('breakStart')),
        break_end=_fmt(data.get('breakEnd')),
        notes=data.get('notes'),
    )


def day_payload(day: DaySchedule) -> dict:
    return {
        'dayOfWeek': day.day_of_week,
        'isAvailable': day.is_available,
        'startTime': day.start_time,
        'endTime': day.end_time,
        'slotDuration': day.slot_duration,
        'breakStart': day.break_start or '',
        'breakEnd': day.break_end or '',
        'notes': day.notes,
    }


class WeekSerializer(serializers.Serializer):
    days = DayScheduleSerializer(many=True)

    def validate_days(self, v):
        if sorted(d['dayOfWeek'] for d in v) != list(range(7)):
            raise serializers.ValidationError('send exactly one entry for each day 0-6')
        return sorted(v, key=lambda d: d['dayOfWeek'])

    def week(self):
        return [to_day(d) for d in self.validated_data['days']]


class ScheduleQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['doctor', 'nurse'], required=False, default='doctor')


class SlotsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    time = serializers.TimeField(input_formats=TIME_FORMATS, required=False)
