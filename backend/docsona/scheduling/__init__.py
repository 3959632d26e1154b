from docsona.scheduling.entity import (
    ACTIVE_STATUSES,
    APPOINTMENT_TYPES,
    CANCELLED_BY,
    STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    Cancellation,
    Reminder,
)
from docsona.scheduling.errors import (
    CancelWindowError,
    InvalidAppointmentData,
    InvalidStatusTransition,
    InvalidTimeFormat,
    PastAppointmentError,
    RescheduleWindowError,
    SchedulingError,
    SlotConflictError,
)
from docsona.scheduling.operations import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_RESCHEDULED,
    AppointmentEvent,
    OperationResult,
    book,
    cancel,
    reschedule,
)
from docsona.scheduling.policy import REMINDER_CHANNELS, SchedulingPolicy
from docsona.scheduling.reminders import (
    clear_pending_reminders,
    due_reminders,
    reschedule_reminders,
    schedule_reminders,
)
from docsona.scheduling.slots import SlotSequence, available_slots, find_conflict
from docsona.scheduling.timeofday import (
    TimeOfDay,
    add_minutes,
    combine,
    diff_hours,
    format_time_of_day,
    normalize_time_of_day,
    parse_time_of_day,
)
