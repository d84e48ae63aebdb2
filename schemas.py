"""Request bodies. Field aliases are the names the website frontend sends."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ContactIn(_Body):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None


class ForumImageIn(_Body):
    title: Optional[str] = Field(default=None, alias="Titulo")
    description: Optional[str] = Field(default=None, alias="Descripcion")
    image_base64: Optional[str] = Field(default=None, alias="ImagenBase64")
    mime_type: Optional[str] = Field(default=None, alias="TipoImagen")
    filename: Optional[str] = Field(default=None, alias="NombreArchivo")
    sort_order: Optional[int] = Field(default=None, alias="Orden")


class ApplicationUpdate(_Body):
    name: Optional[str] = Field(default=None, alias="Nombre")
    rut: Optional[str] = Field(default=None, alias="RUT")
    email: Optional[str] = Field(default=None, alias="Email")
    phone: Optional[str] = Field(default=None, alias="Telefono")
    position: Optional[str] = Field(default=None, alias="Cargo")
    interest: Optional[str] = Field(default=None, alias="Interes")
    message: Optional[str] = Field(default=None, alias="Mensaje")
    desired_area: Optional[str] = Field(default=None, alias="AreaDeseada")
    cv_mime_type: Optional[str] = Field(default=None, alias="TipoArchivo")
    salary_expectation: Optional[str] = Field(default=None, alias="PretensionRenta")
    skills: Optional[str] = Field(default=None, alias="Conocimientos")
    contacted: Optional[str] = Field(default=None, alias="Contactado")
    last_contacted_at: Optional[datetime] = Field(default=None, alias="FechaContactoUltimo")
    pending_certification: Optional[str] = Field(default=None, alias="CertificacionPendiente")
    psych_exam: Optional[str] = Field(default=None, alias="ExamenPsicologico")
    reference_name: Optional[str] = Field(default=None, alias="NombreReferencia")
    reference_email: Optional[str] = Field(default=None, alias="CorreoReferencia")
    education_level: Optional[str] = Field(default=None, alias="NivelEstudio")
    certifications: Optional[str] = Field(default=None, alias="Certificaciones")
    experience: Optional[str] = Field(default=None, alias="Experiencia")


class EvaluationIn(_Body):
    email: Optional[str] = Field(default=None, alias="correoElectronico")
    full_name: Optional[str] = Field(default=None, alias="nombreCompleto")
    company: Optional[str] = Field(default=None, alias="empresa")
    phone: Optional[str] = Field(default=None, alias="telefonoContacto")
    proposed_date: Optional[date] = Field(default=None, alias="fechaPropuestaEvaluacion")
    uses_oracle: bool = Field(default=False, alias="motorBDOracle")
    uses_sqlserver: bool = Field(default=False, alias="motorBDSQLServer")
    uses_mongodb: bool = Field(default=False, alias="motorBDMongoDB")
    other_engines: Optional[str] = Field(default=None, alias="motorBDOtros")
    answer1: Optional[int] = Field(default=None, alias="pregunta1Respuesta")
    answer2: Optional[int] = Field(default=None, alias="pregunta2Respuesta")
    answer3: Optional[int] = Field(default=None, alias="pregunta3Respuesta")
    answer4: Optional[bool] = Field(default=None, alias="pregunta4Respuesta")
    answer5: Optional[bool] = Field(default=None, alias="pregunta5Respuesta")
    answer6: Optional[bool] = Field(default=None, alias="pregunta6Respuesta")

    @field_validator("uses_oracle", "uses_sqlserver", "uses_mongodb", mode="before")
    @classmethod
    def _none_is_false(cls, value):
        return False if value is None else value

    @field_validator("answer1", "answer2", "answer3", mode="before")
    @classmethod
    def _zero_is_unanswered(cls, value):
        # 0 means the question was left unanswered
        return None if value in (0, "0") else value
