from docsona.schemas.appointment import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentRead,
    AppointmentRescheduleRequest,
    AppointmentStatusRead,
    AppointmentVisitNotesRequest,
    AvailableSlotsRead,
    CancellationRead,
    ReminderRead,
)
from docsona.schemas.common import Pagination
