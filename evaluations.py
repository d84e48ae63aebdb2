import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

import mail_templates
from config import Settings
from database import atomic
from errors import NotFoundError, ValidationError
from mailer import MailMessage, Mailer, send_for_record
from models import SecurityEvaluation
from schemas import EvaluationIn
from utils import is_valid_email

logger = logging.getLogger(__name__)

QUESTIONS = {
    1: "¿Su organización cuenta con controles específicos de acceso y gestión de privilegios para bases de datos?",
    2: "¿Realizan evaluaciones periódicas de vulnerabilidades en sus bases de datos?",
    3: "¿Cuál es su nivel de interés en implementar una auditoría de seguridad en bases de datos?",
    4: "¿Cuenta con mecanismos para limitar la exposición de datos sensibles en producción?",
    5: "¿Implementa protección de datos sensibles en ambientes no productivos?",
    6: "¿Su organización comparte información sensible con terceros?",
}

ANSWER_TEXTS = {
    1: {
        1: "Sí, contamos con políticas y herramientas específicas",
        2: "Parcialmente, algunos controles están implementados",
        3: "No, confiamos en configuraciones básicas del motor de base de datos",
        4: "No estoy seguro",
    },
    2: {
        1: "Sí, de forma automatizada y con reportes periódicos",
        2: "Lo hacemos ocasionalmente o de forma manual",
        3: "No realizamos este tipo de actividades",
        4: "No estoy seguro",
    },
    3: {
        1: "Alto interés: es una prioridad para este año",
        2: "Interés medio: lo estamos evaluando para el mediano plazo",
        3: "Bajo interés: no es una prioridad actualmente",
        4: "No aplica / no tengo información",
    },
}


def answer_text(question: int, value) -> str:
    if value is None:
        return "Sin respuesta"
    if question in ANSWER_TEXTS:
        return ANSWER_TEXTS[question].get(value, "Respuesta inválida")
    return "Sí" if value else "No"


def selected_engines(ev) -> list[str]:
    engines = []
    if ev.uses_oracle:
        engines.append("Oracle")
    if ev.uses_sqlserver:
        engines.append("SQL Server")
    if ev.uses_mongodb:
        engines.append("MongoDB")
    if ev.other_engines:
        engines.append(f"Otros: {ev.other_engines}")
    return engines


def evaluation_as_dict(ev: SecurityEvaluation) -> dict:
    return {
        "ID": ev.id,
        "CorreoElectronico": ev.email,
        "NombreCompleto": ev.full_name,
        "Empresa": ev.company,
        "TelefonoContacto": ev.phone,
        "FechaPropuestaEvaluacion": ev.proposed_date,
        "MotorBDOracle": ev.uses_oracle,
        "MotorBDSQLServer": ev.uses_sqlserver,
        "MotorBDMongoDB": ev.uses_mongodb,
        "MotorBDOtros": ev.other_engines,
        "Pregunta1_Respuesta": ev.answer1,
        "Pregunta2_Respuesta": ev.answer2,
        "Pregunta3_Respuesta": ev.answer3,
        "Pregunta4_Respuesta": ev.answer4,
        "Pregunta5_Respuesta": ev.answer5,
        "Pregunta6_Respuesta": ev.answer6,
        "FechaCreacion": ev.created_at,
        "FechaModificacion": ev.updated_at,
    }


def submit_evaluation(db: Session, mailer: Mailer, settings: Settings, payload: EvaluationIn) -> int:
    if not payload.email or not payload.full_name or not payload.company:
        raise ValidationError("Los campos correo electrónico, nombre completo y empresa son obligatorios")
    if not is_valid_email(payload.email):
        raise ValidationError("El formato del correo electrónico no es válido")
    for n in (1, 2, 3):
        value = getattr(payload, f"answer{n}")
        if value is not None and not 1 <= value <= 4:
            raise ValidationError(f"La respuesta de la pregunta {n} debe estar entre 1 y 4")

    with atomic(db):
        ev = SecurityEvaluation(**payload.model_dump())
        db.add(ev)
        db.flush()
        ev_id = ev.id
    logger.info("Security evaluation %s stored for %s", ev_id, payload.company)

    answers = [(QUESTIONS[n], answer_text(n, getattr(payload, f"answer{n}"))) for n in range(1, 7)]
    html = mail_templates.render(
        "evaluation.html", tz=settings.TIMEZONE,
        ev=payload, engines=selected_engines(payload), answers=answers,
    )
    send_for_record(mailer, MailMessage(
        to=[settings.MAIL_TO_COMERCIAL],
        cc=[settings.MAIL_CC_SEGURIDAD] if settings.MAIL_CC_SEGURIDAD else [],
        subject=f"Nueva Evaluación de Seguridad BD - {payload.company}",
        html=html,
    ), ev_id)
    return ev_id


def list_evaluations(db: Session) -> list[dict]:
    with atomic(db):
        rows = db.execute(
            select(SecurityEvaluation).order_by(SecurityEvaluation.created_at.desc())
        ).scalars().all()
    return [evaluation_as_dict(r) for r in rows]


def get_evaluation(db: Session, ev_id: int) -> dict:
    with atomic(db):
        ev = db.get(SecurityEvaluation, ev_id)
    if ev is None:
        raise NotFoundError("Evaluación no encontrada")
    return evaluation_as_dict(ev)
