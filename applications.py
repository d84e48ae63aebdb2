"""Job applications ("Trabaja con Nosotros") and their résumés."""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

import mail_templates
from config import Settings
from database import atomic
from errors import NotFoundError, ValidationError
from mailer import Attachment, MailMessage, Mailer, send_for_record
from models import JobApplication
from schemas import ApplicationUpdate
from utils import format_rut, mask_rut, rut_is_valid

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
INVALID_RUT = "El RUT ingresado no es válido"


@dataclass
class ApplicationForm:
    name: Optional[str] = None
    rut: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    interest: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CvFile:
    filename: str
    content_type: str
    content: bytes


def application_as_dict(app: JobApplication) -> dict:
    return {
        "Id": app.id,
        "Nombre": app.name,
        "RUT": app.rut,
        "Email": app.email,
        "Telefono": app.phone,
        "Cargo": app.position,
        "Interes": app.interest,
        "Mensaje": app.message,
        "NombreArchivoOriginal": app.cv_filename,
        "TipoArchivo": app.cv_mime_type,
        "FechaRegistro": app.created_at,
        "TieneCV": app.has_cv,
        "AreaDeseada": app.desired_area,
        "PretensionRenta": app.salary_expectation,
        "Conocimientos": app.skills,
        "Contactado": app.contacted,
        "FechaContactoUltimo": app.last_contacted_at,
        "CertificacionPendiente": app.pending_certification,
        "ExamenPsicologico": app.psych_exam,
        "NombreReferencia": app.reference_name,
        "CorreoReferencia": app.reference_email,
        "NivelEstudio": app.education_level,
        "Certificaciones": app.certifications,
        "Experiencia": app.experience,
    }


def _check_cv(cv: CvFile, max_bytes: int) -> None:
    if cv.content_type != PDF_MIME_TYPE:
        raise ValidationError(f"Solo se permiten archivos PDF. Tipo recibido: {cv.content_type}")
    if len(cv.content) > max_bytes:
        raise ValidationError(f"El archivo excede el límite de {round(max_bytes / (1024 * 1024))}MB")


def submit_application(db: Session, mailer: Mailer, settings: Settings,
                       form: ApplicationForm, cv: Optional[CvFile] = None) -> int:
    if not (form.name and form.rut and form.email and form.position and form.interest):
        raise ValidationError("Todos los campos obligatorios son requeridos")
    rut = format_rut(form.rut)
    if not rut_is_valid(rut):
        logger.info("Application rejected, invalid RUT %s", mask_rut(form.rut))
        raise ValidationError(INVALID_RUT)
    if cv is not None:
        _check_cv(cv, settings.MAX_UPLOAD_BYTES)

    with atomic(db):
        app = JobApplication(
            name=form.name,
            rut=rut,
            email=form.email,
            phone=form.phone,
            position=form.position,
            interest=form.interest,
            message=form.message,
            cv_base64=base64.b64encode(cv.content).decode("ascii") if cv else None,
            cv_filename=cv.filename if cv else None,
            cv_mime_type=cv.content_type if cv else None,
        )
        db.add(app)
        db.flush()
        app_id = app.id
    logger.info("Application %s stored for %s (%s, cv=%s)", app_id, mask_rut(rut), form.position, bool(cv))

    attachments = [Attachment(cv.filename, cv.content, cv.content_type)] if cv else []
    send_for_record(mailer, MailMessage(
        to=[settings.MAIL_TO_RRHH],
        subject="Nueva Postulación Laboral - Trabaja con Nosotros",
        html=mail_templates.render("application.html", tz=settings.TIMEZONE, app=app),
        attachments=attachments,
    ), app_id)
    return app_id


def list_applications(db: Session) -> list[dict]:
    with atomic(db):
        rows = db.execute(select(JobApplication).order_by(JobApplication.created_at.desc())).scalars().all()
    return [application_as_dict(r) for r in rows]


def get_application(db: Session, app_id: int) -> dict:
    with atomic(db):
        app = db.get(JobApplication, app_id)
    if app is None:
        raise NotFoundError("Postulación no encontrada")
    return application_as_dict(app)


def get_application_cv(db: Session, app_id: int) -> CvFile:
    with atomic(db):
        app = db.get(JobApplication, app_id)
    if app is None:
        raise NotFoundError("Postulación no encontrada")
    if not app.cv_base64 or not app.cv_filename:
        raise NotFoundError("Esta postulación no tiene CV adjunto")
    return CvFile(app.cv_filename, app.cv_mime_type or PDF_MIME_TYPE, base64.b64decode(app.cv_base64))


def update_application(db: Session, app_id: int, payload: ApplicationUpdate) -> None:
    if not (payload.name and payload.rut and payload.email and payload.position):
        raise ValidationError("Los campos Nombre, RUT, Email y Cargo son obligatorios")
    rut = format_rut(payload.rut)
    if not rut_is_valid(rut):
        raise ValidationError(INVALID_RUT)

    fields = payload.model_dump(exclude={"rut"})
    with atomic(db):
        app = db.get(JobApplication, app_id)
        if app is None:
            raise NotFoundError("Postulación no encontrada")
        for name, value in fields.items():
            # interest is NOT NULL; the admin screen may omit it
            if name == "interest" and value is None:
                continue
            setattr(app, name, value)
        app.rut = rut
    logger.info("Application %s updated", app_id)
