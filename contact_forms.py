import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

import mail_templates
from config import Settings
from database import atomic
from errors import ValidationError
from mailer import MailMessage, Mailer, send_for_record
from models import ContactForm
from schemas import ContactIn

logger = logging.getLogger(__name__)


def contact_as_dict(form: ContactForm) -> dict:
    return {
        "Id": form.id,
        "Nombre": form.name,
        "Email": form.email,
        "Mensaje": form.message,
        "FechaRegistro": form.created_at,
    }


def submit_contact(db: Session, mailer: Mailer, settings: Settings, payload: ContactIn) -> int:
    if not payload.name or not payload.email or not payload.message:
        raise ValidationError("Todos los campos son obligatorios")

    with atomic(db):
        form = ContactForm(name=payload.name, email=payload.email, message=payload.message)
        db.add(form)
        db.flush()
        form_id = form.id
    logger.info("Contact form %s stored", form_id)

    html = mail_templates.render(
        "contact.html", tz=settings.TIMEZONE,
        name=payload.name, email=payload.email, message=payload.message,
    )
    send_for_record(mailer, MailMessage(
        to=[settings.MAIL_TO_COMERCIAL],
        subject="Nueva Solicitud de Consultoría - Formulario Web",
        html=html,
    ), form_id)
    return form_id


def list_contacts(db: Session) -> list[dict]:
    with atomic(db):
        forms = db.execute(select(ContactForm).order_by(ContactForm.created_at.desc())).scalars().all()
    return [contact_as_dict(f) for f in forms]
