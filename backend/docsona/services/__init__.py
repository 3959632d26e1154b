from docsona.services.appointments import (
    AppointmentNotFoundError,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    get_appointment,
    get_available_slots,
    list_appointments,
    list_past_appointments,
    list_upcoming_appointments,
    mark_no_show,
    record_visit_notes,
    reschedule_appointment,
    start_appointment,
)
from docsona.services.background import (
    dispatch_due_reminders,
    start_background_services,
    stop_background_services,
)
