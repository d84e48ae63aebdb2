import pytest
from fastapi.testclient import TestClient

import contact_forms
from app import create_app, parse_id
from errors import ValidationError

PDF = b"%PDF-1.4\n%orasystem test\n"
IMAGE = "data:image/png;base64," + "A" * 400


@pytest.fixture
def client(settings, mailer):
    with TestClient(create_app(settings, mailer=mailer)) as c:
        yield c


def application_form(**overrides):
    form = {
        "nombre": "Camila Rojas",
        "rut": "12.345.678-5",
        "email": "camila@example.cl",
        "telefono": "+56 9 1234 5678",
        "cargo": "DBA Oracle",
        "interes": "Me interesa trabajar con bases de datos críticas",
        "mensaje": "",
    }
    form.update(overrides)
    return form


def evaluation_body(**overrides):
    body = {
        "correoElectronico": "ti@empresa.cl",
        "nombreCompleto": "Pedro Soto",
        "empresa": "Empresa SpA",
        "telefonoContacto": "+56 2 2345 6789",
        "fechaPropuestaEvaluacion": "2026-11-02",
        "motorBDOracle": True,
        "motorBDSQLServer": False,
        "motorBDMongoDB": None,
        "motorBDOtros": "PostgreSQL",
        "pregunta1Respuesta": 2,
        "pregunta2Respuesta": 3,
        "pregunta3Respuesta": 1,
        "pregunta4Respuesta": True,
        "pregunta5Respuesta": False,
        "pregunta6Respuesta": True,
    }
    body.update(overrides)
    return body


def test_parse_id():
    assert parse_id("42", "la imagen") == 42
    with pytest.raises(ValidationError):
        parse_id("4a", "la imagen")
    with pytest.raises(ValidationError):
        parse_id("-1", "la imagen")


def test_diagnostics(client):
    assert client.get("/healthz").json() == {"ok": True}
    body = client.get("/api/test").json()
    assert body["success"] is True
    assert "POST /api/foroimagenes" in body["availableRoutes"]
    assert client.get("/", headers={"X-Forwarded-For": "200.1.2.3, 10.0.0.1"}).json()["clientIP"] == "200.1.2.3"


def test_contact_form(client, mailer):
    resp = client.post("/api/formulario", json={"name": "Ana", "email": "ana@example.cl", "message": "Hola"})

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert mailer.sent[0].to == ["comercial@orasystem.cl"]
    assert mailer.sent[0].subject == "Nueva Solicitud de Consultoría - Formulario Web"
    assert "Ana" in mailer.sent[0].html

    listed = client.get("/api/formularios").json()["data"]
    assert [row["Id"] for row in listed] == [resp.json()["data"]["id"]]


def test_contact_form_requires_all_fields(client, mailer):
    resp = client.post("/api/formulario", json={"name": "Ana", "email": " ", "message": "Hola"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Todos los campos son obligatorios"}
    assert mailer.sent == []


def test_mail_failure_keeps_the_record(client, mailer):
    mailer.fail = True

    resp = client.post("/api/formulario", json={"name": "Ana", "email": "ana@example.cl", "message": "Hola"})

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Connection refused"
    assert len(client.get("/api/formularios").json()["data"]) == 1
    assert body["data"]["id"] == client.get("/api/formularios").json()["data"][0]["Id"]


def test_application_with_cv(client, mailer):
    resp = client.post(
        "/api/postulacion",
        data=application_form(rut="123456785"),
        files={"cv": ("Currículum Camila.pdf", PDF, "application/pdf")},
    )

    assert resp.status_code == 200, resp.text
    app_id = resp.json()["data"]["id"]

    stored = client.get(f"/api/postulacion/{app_id}").json()["data"]
    assert stored["RUT"] == "12.345.678-5"
    assert stored["TieneCV"] is True
    assert stored["Mensaje"] is None

    cv = client.get(f"/api/postulacion/{app_id}/cv")
    assert cv.status_code == 200
    assert cv.content == PDF
    assert cv.headers["content-type"] == "application/pdf"
    assert "filename*=UTF-8''Curr%C3%ADculum%20Camila.pdf" in cv.headers["content-disposition"]

    sent = mailer.sent[0]
    assert sent.to == ["rrhh@orasystem.cl"]
    assert sent.attachments[0].content == PDF
    assert "12.345.678-5" in sent.html


def test_application_without_cv(client):
    resp = client.post("/api/postulacion", data=application_form())
    app_id = resp.json()["data"]["id"]

    assert client.get(f"/api/postulacion/{app_id}").json()["data"]["TieneCV"] is False
    cv = client.get(f"/api/postulacion/{app_id}/cv")
    assert cv.status_code == 404
    assert cv.json()["message"] == "Esta postulación no tiene CV adjunto"


def test_application_rejects_invalid_rut(client, mailer):
    resp = client.post("/api/postulacion", data=application_form(rut="12.345.678-6"))

    assert resp.status_code == 400
    assert resp.json()["message"] == "El RUT ingresado no es válido"
    assert client.get("/api/postulaciones").json()["data"] == []
    assert mailer.sent == []


def test_application_rejects_non_pdf(client):
    resp = client.post(
        "/api/postulacion",
        data=application_form(),
        files={"cv": ("cv.docx", b"PK\x03\x04", "application/vnd.openxmlformats-officedocument.wordprocessingml.document")},
    )

    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Solo se permiten archivos PDF")


def test_application_rejects_oversized_cv(client, settings):
    settings.MAX_UPLOAD_BYTES = 10

    resp = client.post("/api/postulacion", data=application_form(), files={"cv": ("cv.pdf", PDF, "application/pdf")})

    assert resp.status_code == 400
    assert "excede" in resp.json()["message"]


def test_application_requires_fields(client):
    resp = client.post("/api/postulacion", data=application_form(interes=""))

    assert resp.status_code == 400
    assert resp.json()["message"] == "Todos los campos obligatorios son requeridos"


def test_update_application(client):
    app_id = client.post("/api/postulacion", data=application_form()).json()["data"]["id"]

    resp = client.put(f"/api/postulacion/{app_id}", json={
        "Nombre": "Camila Rojas",
        "RUT": "11111111-1",
        "Email": "camila@example.cl",
        "Cargo": "DBA SQL Server",
        "Contactado": "Sí",
        "FechaContactoUltimo": "2026-10-15T10:30:00",
        "NivelEstudio": "Universitario",
    })

    assert resp.status_code == 200, resp.text
    stored = client.get(f"/api/postulacion/{app_id}").json()["data"]
    assert stored["RUT"] == "11.111.111-1"
    assert stored["Cargo"] == "DBA SQL Server"
    assert stored["Contactado"] == "Sí"
    assert stored["NivelEstudio"] == "Universitario"
    assert stored["Interes"] == "Me interesa trabajar con bases de datos críticas"


def test_update_application_errors(client):
    body = {"Nombre": "X", "RUT": "11111111-1", "Email": "x@example.cl", "Cargo": "DBA"}

    assert client.put("/api/postulacion/999", json=body).status_code == 404
    assert client.put("/api/postulacion/999", json={**body, "RUT": "1111"}).status_code == 400
    assert client.put("/api/postulacion/999", json={**body, "Cargo": ""}).status_code == 400


def test_non_numeric_id(client):
    resp = client.get("/api/postulacion/abc")

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "El ID de la postulación debe ser un número"}


def test_forum_image_lifecycle(client):
    resp = client.post("/api/foroimagenes", json={"Titulo": "Portada", "ImagenBase64": IMAGE, "Orden": 1})
    assert resp.status_code == 201
    image_id = resp.json()["data"]["id"]

    listing = client.get("/api/foroimagenes").json()
    assert listing["count"] == 1
    assert listing["data"][0]["TieneImagen"] is True
    assert "ImagenBase64" not in listing["data"][0]

    detail = client.get(f"/api/foroimagenes/{image_id}").json()["data"]
    assert detail["ImagenBase64"] == IMAGE
    assert detail["TipoImagen"] == "image/png"

    resp = client.put(f"/api/foroimagenes/{image_id}", json={"Titulo": "Portada 2026", "Orden": 0})
    assert resp.status_code == 200
    assert client.get(f"/api/foroimagenes/{image_id}").json()["data"]["Titulo"] == "Portada 2026"

    assert client.delete(f"/api/foroimagenes/{image_id}").status_code == 200
    assert client.get(f"/api/foroimagenes/{image_id}").status_code == 404


def test_forum_image_conflict_body(client):
    first = client.post("/api/foroimagenes", json={"Titulo": "Portada", "ImagenBase64": IMAGE}).json()["data"]["id"]

    resp = client.post("/api/foroimagenes", json={"Titulo": "Portada", "ImagenBase64": IMAGE})

    assert resp.status_code == 409
    assert resp.json() == {
        "success": False,
        "message": "Ya existe una imagen con este título exacto",
        "data": {"id": first},
    }


def test_forum_image_bad_requests(client):
    assert client.post("/api/foroimagenes", json={"Titulo": "Sin imagen"}).status_code == 400
    assert client.post("/api/foroimagenes", json={"Titulo": "x", "ImagenBase64": "texto"}).status_code == 400

    resp = client.post("/api/foroimagenes", json={"Titulo": "x", "ImagenBase64": IMAGE, "Orden": "primero"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Datos inválidos en la solicitud"

    assert client.get("/api/foroimagenes/uno").status_code == 400
    assert client.delete("/api/foroimagenes/999").status_code == 404


def test_purge_forum_duplicates(client):
    client.post("/api/foroimagenes", json={"Titulo": "Portada", "ImagenBase64": IMAGE})

    resp = client.post("/api/foroimagenes/limpiar-duplicados")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"deletedByTitle": 0, "deletedOrphans": 0}


def test_security_evaluation(client, mailer):
    resp = client.post("/api/formulario-evaluacion", json=evaluation_body())
    assert resp.status_code == 200, resp.text
    ev_id = resp.json()["data"]["id"]

    sent = mailer.sent[0]
    assert sent.to == ["comercial@orasystem.cl"]
    assert sent.cc == ["seguridad@orasystem.cl"]
    assert sent.subject == "Nueva Evaluación de Seguridad BD - Empresa SpA"
    assert "Parcialmente, algunos controles están implementados" in sent.html
    assert "02-11-2026" in sent.html

    listing = client.get("/api/formulario-evaluacion").json()
    assert listing["count"] == 1

    stored = client.get(f"/api/formulario-evaluacion/{ev_id}").json()["data"]
    assert stored["Empresa"] == "Empresa SpA"
    assert stored["MotorBDMongoDB"] is False
    assert stored["Pregunta5_Respuesta"] is False
    assert stored["FechaPropuestaEvaluacion"] == "2026-11-02"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"empresa": ""}, "Los campos correo electrónico, nombre completo y empresa son obligatorios"),
        ({"correoElectronico": "ti@empresa"}, "El formato del correo electrónico no es válido"),
        ({"pregunta2Respuesta": 5}, "La respuesta de la pregunta 2 debe estar entre 1 y 4"),
    ],
)
def test_security_evaluation_validation(client, mailer, overrides, message):
    resp = client.post("/api/formulario-evaluacion", json=evaluation_body(**overrides))

    assert resp.status_code == 400
    assert resp.json()["message"] == message
    assert mailer.sent == []


def test_missing_evaluation(client):
    assert client.get("/api/formulario-evaluacion/7").status_code == 404


def test_report_endpoint(client, mailer):
    client.post("/api/postulacion", data=application_form())

    resp = client.post("/api/reporte/postulaciones")

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Reporte enviado correctamente con 1 postulaciones"
    assert body["messageId"] == "<2@orasystem.cl>"
    report = mailer.sent[-1]
    assert report.cc == ["comercial@orasystem.cl"]
    assert report.attachments[0].filename.startswith("postulaciones_")
    assert report.attachments[0].filename.endswith(".xlsx")


def test_zero_answer_means_unanswered(client, mailer):
    resp = client.post("/api/formulario-evaluacion", json=evaluation_body(pregunta1Respuesta=0))

    assert resp.status_code == 200, resp.text
    stored = client.get(f"/api/formulario-evaluacion/{resp.json()['data']['id']}").json()["data"]
    assert stored["Pregunta1_Respuesta"] is None
    assert "Sin respuesta" in mailer.sent[0].html


def test_report_with_control_characters(client, mailer):
    client.post("/api/postulacion", data=application_form(mensaje="linea1\x0blinea2"))

    resp = client.post("/api/reporte/postulaciones")

    assert resp.status_code == 200
    assert resp.json()["message"] == "Reporte enviado correctamente con 1 postulaciones"


def test_unexpected_errors_render_as_json(settings, mailer, monkeypatch):
    def broken(db):
        raise RuntimeError("template missing")

    monkeypatch.setattr(contact_forms, "list_contacts", broken)

    with TestClient(create_app(settings, mailer=mailer), raise_server_exceptions=False) as c:
        resp = c.get("/api/formularios")

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "message": "Error interno",
        "error": "RuntimeError: template missing",
    }
