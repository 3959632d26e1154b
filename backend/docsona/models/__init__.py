from docsona.models.appointment import (
    AppointmentRecord,
    AppointmentReminderRecord,
    AppointmentStatusHistory,
)
