"""
Applications report.

Builds an Excel workbook with the applications received in the last
``REPORT_DAYS`` days and mails it to HR. Triggered by
``POST /api/reporte/postulaciones`` and by ``manage.py send-report``,
which the host cron runs on the 1st of each month at 09:00 Chile time.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Optional
from zoneinfo import ZoneInfo

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy import select
from sqlalchemy.orm import Session

import mail_templates
from config import Settings
from database import atomic
from mailer import Attachment, MailMessage, Mailer
from models import JobApplication, utcnow

logger = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, attribute, width, fallback for empty values)
COLUMNS = [
    ("ID", "id", 10, None),
    ("Nombre", "name", 25, None),
    ("RUT", "rut", 15, None),
    ("Email", "email", 30, None),
    ("Teléfono", "phone", 15, "No proporcionado"),
    ("Cargo", "position", 30, None),
    ("Área Deseada", "desired_area", 20, "No especificada"),
    ("Pretensión Renta", "salary_expectation", 15, "No especificada"),
    ("Nivel Estudio", "education_level", 20, "No especificado"),
    ("Experiencia", "experience", 15, "No especificada"),
    ("Conocimientos", "skills", 40, "No especificados"),
    ("Certificaciones", "certifications", 30, "No especificadas"),
    ("Interés en Orasystem", "interest", 50, None),
    ("Mensaje", "message", 40, "Sin mensaje adicional"),
    ("Contactado", "contacted", 12, "No"),
    ("Fecha Último Contacto", "last_contacted_at", 20, "No contactado"),
    ("Certificación Pendiente", "pending_certification", 25, "No especificada"),
    ("Examen Psicológico", "psych_exam", 20, "No realizado"),
    ("Nombre Referencia", "reference_name", 25, "No proporcionado"),
    ("Correo Referencia", "reference_email", 30, "No proporcionado"),
    ("Tiene CV", "has_cv", 12, None),
    ("Nombre Archivo CV", "cv_filename", 30, "Sin CV"),
    ("Fecha Registro", "created_at", 20, None),
]

HEADER_FILL = PatternFill(start_color="FF0170B9", end_color="FF0170B9", fill_type="solid")
STRIPE_FILL = PatternFill(start_color="FFF8F9FA", end_color="FFF8F9FA", fill_type="solid")
THIN = Side(style="thin")
BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)


def fetch_recent_applications(db: Session, days: int, now: Optional[datetime] = None) -> list:
    since = (now or utcnow()) - timedelta(days=days)
    with atomic(db):
        return db.execute(
            select(JobApplication)
            .where(JobApplication.created_at >= since)
            .order_by(JobApplication.created_at.desc())
        ).scalars().all()


def _local_date(value: datetime, tz: ZoneInfo) -> str:
    return value.replace(tzinfo=timezone.utc).astimezone(tz).strftime("%d-%m-%Y")


def _clean_text(value: str) -> str:
    # control characters pasted from Word make openpyxl refuse the cell
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def _cell_value(app, attr: str, fallback, tz: ZoneInfo):
    value = getattr(app, attr)
    if attr == "has_cv":
        return "Sí" if value else "No"
    if isinstance(value, datetime):
        return _local_date(value, tz)
    if isinstance(value, str):
        value = _clean_text(value)
    if value in (None, ""):
        return fallback
    return value


def build_applications_workbook(rows: list, generated_at: datetime, days: int = 30,
                                tz: str = "America/Santiago") -> bytes:
    zone = ZoneInfo(tz)
    wb = Workbook()
    ws = wb.active
    ws.title = "Postulaciones"

    for col, (header, _, width, _) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = BORDER
        ws.column_dimensions[get_column_letter(col)].width = width

    for index, app in enumerate(rows):
        row_num = index + 2
        for col, (_, attr, _, fallback) in enumerate(COLUMNS, 1):
            cell = ws.cell(row=row_num, column=col, value=_cell_value(app, attr, fallback, zone))
            if index % 2 == 0:
                cell.fill = STRIPE_FILL
            cell.border = BORDER
            cell.alignment = Alignment(vertical="top", wrap_text=True)
        ws.row_dimensions[row_num].height = 60
    ws.freeze_panes = "A2"

    summary = wb.create_sheet("Resumen")
    total = len(rows)
    with_cv = sum(1 for r in rows if r.has_cv)
    contacted = sum(1 for r in rows if (r.contacted or "").strip().lower() in ("sí", "si"))
    by_position = Counter(r.position for r in rows)

    summary.append([f"REPORTE DE POSTULACIONES - ÚLTIMOS {days} DÍAS"])
    summary.append(["Generado el:", _local_date(generated_at, zone)])
    summary.append(["Total de postulaciones:", total])
    summary.append([])
    summary.append(["POSTULACIONES POR CARGO:"])
    for position, count in by_position.most_common():
        summary.append([_clean_text(position or ""), count])
    summary.append([])
    summary.append(["ESTADÍSTICAS ADICIONALES:"])
    stats_row = summary.max_row
    summary.append(["Postulaciones con CV:", with_cv])
    summary.append(["Postulaciones sin CV:", total - with_cv])
    summary.append(["Candidatos contactados:", contacted])
    summary.append(["Candidatos pendientes de contacto:", total - contacted])

    summary["A1"].font = Font(bold=True, size=14)
    summary["A5"].font = Font(bold=True)
    summary[f"A{stats_row}"].font = Font(bold=True)
    summary.column_dimensions["A"].width = 40
    summary.column_dimensions["B"].width = 15

    out = BytesIO()
    wb.save(out)
    return out.getvalue()


def send_applications_report(db: Session, mailer: Mailer, settings: Settings,
                             now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    rows = fetch_recent_applications(db, settings.REPORT_DAYS, now)
    logger.info("Applications report: %d application(s) in the last %d days", len(rows), settings.REPORT_DAYS)

    zone = ZoneInfo(settings.TIMEZONE)
    local_now = now.replace(tzinfo=timezone.utc).astimezone(zone)
    file_name = f"postulaciones_{local_now.strftime('%Y-%m-%d')}.xlsx"
    content = build_applications_workbook(rows, now, settings.REPORT_DAYS, settings.TIMEZONE)

    html = mail_templates.render(
        "report.html", tz=settings.TIMEZONE,
        count=len(rows), days=settings.REPORT_DAYS, file_name=file_name,
        since=local_now - timedelta(days=settings.REPORT_DAYS),
    )
    message_id = mailer.send(MailMessage(
        to=[settings.MAIL_TO_RRHH],
        cc=[settings.MAIL_CC_REPORTE] if settings.MAIL_CC_REPORTE else [],
        subject=f"Reporte Mensual de Postulaciones - {local_now.strftime('%d-%m-%Y')}",
        html=html,
        attachments=[Attachment(file_name, content, XLSX_MIME_TYPE)],
    ))
    return {
        "count": len(rows),
        "fileName": file_name,
        "messageId": message_id,
        "message": f"Reporte enviado correctamente con {len(rows)} postulaciones",
    }
