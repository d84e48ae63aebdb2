import logging
import platform
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

import applications
import contact_forms
import evaluations
import forum_images
import reports
from config import Settings, load_settings
from database import create_db_engine, get_session, init_db, make_session_factory
from errors import ServiceError, ValidationError
from mailer import Mailer
from schemas import ApplicationUpdate, ContactIn, EvaluationIn, ForumImageIn

APP_NAME = "Orasystem Web API"

logger = logging.getLogger(__name__)

ROUTES = [
    "GET /api/formularios",
    "POST /api/formulario",
    "GET /api/postulaciones",
    "POST /api/postulacion",
    "GET /api/postulacion/{id}",
    "GET /api/postulacion/{id}/cv",
    "PUT /api/postulacion/{id}",
    "GET /api/foroimagenes",
    "GET /api/foroimagenes/{id}",
    "POST /api/foroimagenes",
    "PUT /api/foroimagenes/{id}",
    "DELETE /api/foroimagenes/{id}",
    "POST /api/foroimagenes/limpiar-duplicados",
    "GET /api/formulario-evaluacion",
    "GET /api/formulario-evaluacion/{id}",
    "POST /api/formulario-evaluacion",
    "POST /api/reporte/postulaciones",
]


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def parse_id(raw: str, what: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise ValidationError(f"El ID de {what} debe ser un número")
    return int(raw)


def _attachment_header(filename: str) -> str:
    fallback = filename.encode("ascii", "ignore").decode().replace('"', "") or "cv.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def create_app(settings: Optional[Settings] = None, mailer: Optional[Mailer] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(settings)
        init_db(engine)
        app.state.engine = engine
        app.state.session_factory = make_session_factory(engine)
        if mailer is not None:
            app.state.mailer = mailer
        else:
            app.state.mailer = Mailer.from_settings(settings)
            app.state.mailer.verify()
        logger.info("%s started", APP_NAME)
        yield
        engine.dispose()
        logger.info("%s stopped", APP_NAME)

    app = FastAPI(title=APP_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        logger.info("%s %s from %s", request.method, request.url.path, client_ip(request))
        return await call_next(request)

    @app.exception_handler(ServiceError)
    async def service_error(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(settings.EXPOSE_ERROR_DETAIL))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        body = ValidationError("Datos inválidos en la solicitud", detail=detail).to_body(settings.EXPOSE_ERROR_DETAIL)
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path, exc_info=exc)
        body = ServiceError(detail=f"{type(exc).__name__}: {exc}").to_body(settings.EXPOSE_ERROR_DETAIL)
        return JSONResponse(status_code=500, content=body)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/")
    def diagnostics(request: Request):
        return {
            "message": "API para formulario de contacto funcionando correctamente",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "clientIP": client_ip(request),
            "pythonVersion": platform.python_version(),
        }

    @app.get("/api/test")
    def api_test():
        return {
            "success": True,
            "message": "APIs funcionando correctamente",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "availableRoutes": ROUTES,
        }

    # contact form

    @app.post("/api/formulario")
    def submit_contact(payload: ContactIn, db: Session = Depends(get_session),
                       mailer: Mailer = Depends(get_mailer), cfg: Settings = Depends(get_settings)):
        form_id = contact_forms.submit_contact(db, mailer, cfg, payload)
        return {"success": True, "message": "Formulario enviado correctamente", "data": {"id": form_id}}

    @app.get("/api/formularios")
    def list_contacts(db: Session = Depends(get_session)):
        return {"success": True, "data": contact_forms.list_contacts(db)}

    # job applications

    @app.post("/api/postulacion")
    def submit_application(
        nombre: Optional[str] = Form(None),
        rut: Optional[str] = Form(None),
        email: Optional[str] = Form(None),
        telefono: Optional[str] = Form(None),
        cargo: Optional[str] = Form(None),
        interes: Optional[str] = Form(None),
        mensaje: Optional[str] = Form(None),
        cv: Optional[UploadFile] = File(None),
        db: Session = Depends(get_session),
        mailer: Mailer = Depends(get_mailer),
        cfg: Settings = Depends(get_settings),
    ):
        form = applications.ApplicationForm(
            name=nombre, rut=rut, email=email, phone=telefono or None,
            position=cargo, interest=interes, message=mensaje or None,
        )
        upload = None
        if cv is not None and cv.filename:
            # one byte past the limit is enough to reject
            content = cv.file.read(cfg.MAX_UPLOAD_BYTES + 1)
            upload = applications.CvFile(cv.filename, cv.content_type or "", content)
        app_id = applications.submit_application(db, mailer, cfg, form, upload)
        return {"success": True, "message": "Postulación enviada correctamente", "data": {"id": app_id}}

    @app.get("/api/postulaciones")
    def list_applications(db: Session = Depends(get_session)):
        return {"success": True, "data": applications.list_applications(db)}

    @app.get("/api/postulacion/{app_id}/cv")
    def download_cv(app_id: str, db: Session = Depends(get_session)):
        cv = applications.get_application_cv(db, parse_id(app_id, "la postulación"))
        return Response(
            content=cv.content,
            media_type=cv.content_type,
            headers={"Content-Disposition": _attachment_header(cv.filename)},
        )

    @app.get("/api/postulacion/{app_id}")
    def get_application(app_id: str, db: Session = Depends(get_session)):
        return {"success": True, "data": applications.get_application(db, parse_id(app_id, "la postulación"))}

    @app.put("/api/postulacion/{app_id}")
    def update_application(app_id: str, payload: ApplicationUpdate, db: Session = Depends(get_session)):
        applications.update_application(db, parse_id(app_id, "la postulación"), payload)
        return {"success": True, "message": "Postulación actualizada correctamente"}

    # forum images

    @app.get("/api/foroimagenes")
    def list_forum_images(db: Session = Depends(get_session)):
        images = forum_images.list_images(db)
        return {
            "success": True,
            "data": images,
            "count": len(images),
            "message": "Metadata de imágenes obtenida. Use /api/foroimagenes/:id para obtener imagen completa.",
        }

    @app.post("/api/foroimagenes/limpiar-duplicados")
    def purge_forum_duplicates(db: Session = Depends(get_session)):
        result = forum_images.purge_duplicates(db)
        total = result["deletedByTitle"] + result["deletedOrphans"]
        return {
            "success": True,
            "message": f"Limpieza completada. Se eliminaron {total} registros en total.",
            "data": result,
        }

    @app.get("/api/foroimagenes/{image_id}")
    def get_forum_image(image_id: str, db: Session = Depends(get_session)):
        return {"success": True, "data": forum_images.get_image(db, parse_id(image_id, "la imagen"))}

    @app.post("/api/foroimagenes", status_code=201)
    def create_forum_image(payload: ForumImageIn, db: Session = Depends(get_session),
                           cfg: Settings = Depends(get_settings)):
        image_id = forum_images.create_image(db, payload, cfg.MAX_UPLOAD_BYTES)
        return {"success": True, "message": "Imagen del foro creada correctamente", "data": {"id": image_id}}

    @app.put("/api/foroimagenes/{image_id}")
    def update_forum_image(image_id: str, payload: ForumImageIn, db: Session = Depends(get_session),
                           cfg: Settings = Depends(get_settings)):
        forum_images.update_image(db, parse_id(image_id, "la imagen"), payload, cfg.MAX_UPLOAD_BYTES)
        return {"success": True, "message": "Imagen del foro actualizada correctamente"}

    @app.delete("/api/foroimagenes/{image_id}")
    def delete_forum_image(image_id: str, db: Session = Depends(get_session)):
        forum_images.delete_image(db, parse_id(image_id, "la imagen"))
        return {"success": True, "message": "Imagen del foro eliminada correctamente"}

    # security evaluation

    @app.post("/api/formulario-evaluacion")
    def submit_evaluation(payload: EvaluationIn, db: Session = Depends(get_session),
                          mailer: Mailer = Depends(get_mailer), cfg: Settings = Depends(get_settings)):
        ev_id = evaluations.submit_evaluation(db, mailer, cfg, payload)
        return {"success": True, "message": "Evaluación de seguridad enviada correctamente", "data": {"id": ev_id}}

    @app.get("/api/formulario-evaluacion")
    def list_evaluations(db: Session = Depends(get_session)):
        rows = evaluations.list_evaluations(db)
        return {"success": True, "data": rows, "count": len(rows)}

    @app.get("/api/formulario-evaluacion/{ev_id}")
    def get_evaluation(ev_id: str, db: Session = Depends(get_session)):
        return {"success": True, "data": evaluations.get_evaluation(db, parse_id(ev_id, "la evaluación"))}

    # report

    @app.post("/api/reporte/postulaciones")
    def send_report(db: Session = Depends(get_session), mailer: Mailer = Depends(get_mailer),
                    cfg: Settings = Depends(get_settings)):
        result = reports.send_applications_report(db, mailer, cfg)
        return {
            "success": True,
            "message": result["message"],
            "messageId": result["messageId"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
