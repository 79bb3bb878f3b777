from datetime import date
from html import escape

_SUBJECTS = {
    "es": "Recordatorio de Mantenimiento: {facility}",
    "en": "Maintenance Reminder: {facility}",
}

_BODIES = {
    "es": (
        "<h1>Hola {client},</h1>"
        "<p>Este es un recordatorio automático de que su instalación "
        "<strong>{facility}</strong> requiere mantenimiento.</p>"
        "<p>Fecha de última revisión/instalación: {last_date}</p>"
        "<p>Por favor contáctenos para agendar una cita.</p>"
        "<br/><p>Atentamente,</p><p>{signature}</p>"
    ),
    "en": (
        "<h1>Hello {client},</h1>"
        "<p>This is an automatic reminder that your installation "
        "<strong>{facility}</strong> is due for maintenance.</p>"
        "<p>Last service/installation date: {last_date}</p>"
        "<p>Please contact us to schedule a visit.</p>"
        "<br/><p>Kind regards,</p><p>{signature}</p>"
    ),
}

_SIGNATURES = {"es": "El equipo de Gateworks", "en": "The Gateworks team"}


def build_reminder_email(
    client_name: str, facility_name: str, last_date: date, locale: str = "es"
) -> tuple[str, str]:
    """Subject and HTML body of a maintenance reminder."""
    if locale not in _BODIES:
        locale = "es"

    subject = _SUBJECTS[locale].format(facility=facility_name)
    html = _BODIES[locale].format(
        client=escape(client_name),
        facility=escape(facility_name),
        last_date=last_date.strftime("%d/%m/%Y"),
        signature=_SIGNATURES[locale],
    )
    return subject, html
