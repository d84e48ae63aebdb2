"""Forum image store.

Titles are unique among live records. Every write that sets a title runs
inside one transaction in this order:

1. lock the table (``database.lock_table``),
2. look for another live record holding the title -> ``ConflictError``,
3. delete orphans holding the title (payload missing or truncated),
4. insert or update,
5. commit.

Input checks happen before the transaction opens so oversized payloads
never wait on, or hold, the lock.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import atomic, lock_table
from errors import ConflictError, NotFoundError, StorageError, ValidationError
from models import ForumImage
from schemas import ForumImageIn
from utils import image_mime_type

logger = logging.getLogger(__name__)

ORPHAN_MAX_LENGTH = 100
DEFAULT_MIME_TYPE = "image/jpeg"
DEFAULT_FILENAME = "imagen.jpg"

_payload_length = func.length(ForumImage.image_base64)
_is_orphan = or_(ForumImage.image_base64.is_(None), _payload_length < ORPHAN_MAX_LENGTH)


def _check_image(data_url: str, max_bytes: int) -> None:
    if len(data_url) > max_bytes:
        raise ValidationError(
            f"La imagen es demasiado grande. Máximo {round(max_bytes / (1024 * 1024))}MB permitido.",
            detail=f"{round(len(data_url) / (1024 * 1024), 2)}MB recibidos",
        )
    if not data_url.startswith("data:image/"):
        raise ValidationError("Formato de imagen inválido. Debe ser una imagen en Base64.")


def _find_holder(db: Session, title: str, exclude_id: Optional[int] = None) -> Optional[int]:
    stmt = select(ForumImage.id).where(
        ForumImage.title == title,
        ForumImage.image_base64.is_not(None),
        _payload_length >= ORPHAN_MAX_LENGTH,
    )
    if exclude_id is not None:
        stmt = stmt.where(ForumImage.id != exclude_id)
    return db.execute(stmt.order_by(ForumImage.id).limit(1)).scalar()


def _drop_orphans(db: Session, title: str, exclude_id: Optional[int] = None) -> int:
    stmt = delete(ForumImage).where(ForumImage.title == title, _is_orphan)
    if exclude_id is not None:
        stmt = stmt.where(ForumImage.id != exclude_id)
    return db.execute(stmt, execution_options={"synchronize_session": False}).rowcount or 0


def _reraise_as_conflict(db: Session, err: StorageError, title: str, exclude_id: Optional[int], message: str):
    # The unique index fired: another writer slipped past the lock.
    if isinstance(err.__cause__, IntegrityError):
        with atomic(db):
            holder = _find_holder(db, title, exclude_id)
        if holder is not None:
            raise ConflictError(holder, message) from err
    raise err


def image_summary(image) -> dict:
    return {
        "Id": image.id,
        "Titulo": image.title,
        "Descripcion": image.description,
        "TipoImagen": image.mime_type,
        "NombreArchivo": image.filename,
        "Orden": image.sort_order,
        "FechaCreacion": image.created_at,
        "TieneImagen": bool(image.size),
        "TamanoImagen": image.size or 0,
    }


def image_detail(image: ForumImage) -> dict:
    return {
        "Id": image.id,
        "Titulo": image.title,
        "Descripcion": image.description,
        "ImagenBase64": image.image_base64,
        "TipoImagen": image.mime_type,
        "NombreArchivo": image.filename,
        "Orden": image.sort_order,
        "FechaCreacion": image.created_at,
    }


def list_images(db: Session) -> list[dict]:
    stmt = select(
        ForumImage.id,
        ForumImage.title,
        ForumImage.description,
        ForumImage.mime_type,
        ForumImage.filename,
        ForumImage.sort_order,
        ForumImage.created_at,
        func.coalesce(_payload_length, 0).label("size"),
    ).order_by(ForumImage.sort_order, ForumImage.created_at.desc())
    with atomic(db):
        rows = db.execute(stmt).all()
    return [image_summary(row) for row in rows]


def get_image(db: Session, image_id: int) -> dict:
    with atomic(db):
        image = db.get(ForumImage, image_id)
    if image is None:
        raise NotFoundError("Imagen no encontrada")
    return image_detail(image)


def create_image(db: Session, payload: ForumImageIn, max_bytes: int) -> int:
    if not payload.title or not payload.image_base64:
        raise ValidationError("El título y la imagen son obligatorios")
    _check_image(payload.image_base64, max_bytes)
    title = payload.title
    message = "Ya existe una imagen con este título exacto"

    try:
        with atomic(db):
            lock_table(db, ForumImage.__table__, ForumImage.title, title)
            holder = _find_holder(db, title)
            if holder is not None:
                logger.info("Forum image title %r already held by %s", title, holder)
                raise ConflictError(holder, message)
            removed = _drop_orphans(db, title)
            image = ForumImage(
                title=title,
                description=payload.description,
                image_base64=payload.image_base64,
                mime_type=payload.mime_type or image_mime_type(payload.image_base64),
                filename=payload.filename,
                sort_order=payload.sort_order,
            )
            db.add(image)
            db.flush()
            new_id = image.id
    except StorageError as e:
        _reraise_as_conflict(db, e, title, None, message)

    logger.info("Forum image %s created (%r, %d orphan(s) removed)", new_id, title, removed)
    return new_id


def update_image(db: Session, image_id: int, payload: ForumImageIn, max_bytes: int) -> None:
    if not payload.title:
        raise ValidationError("El título es obligatorio")
    if payload.image_base64:
        _check_image(payload.image_base64, max_bytes)
    title = payload.title
    message = "Ya existe otra imagen con este título"

    try:
        with atomic(db):
            lock_table(db, ForumImage.__table__, ForumImage.title, title)
            holder = _find_holder(db, title, exclude_id=image_id)
            if holder is not None:
                raise ConflictError(holder, message)
            image = db.get(ForumImage, image_id)
            if image is None:
                raise NotFoundError("Imagen no encontrada")
            _drop_orphans(db, title, exclude_id=image_id)

            mime_type = payload.mime_type
            if not mime_type and payload.image_base64:
                mime_type = image_mime_type(payload.image_base64)
            image.title = title
            image.description = payload.description
            image.mime_type = mime_type or image.mime_type or DEFAULT_MIME_TYPE
            image.filename = payload.filename or image.filename or DEFAULT_FILENAME
            image.sort_order = payload.sort_order
            if payload.image_base64:
                image.image_base64 = payload.image_base64
            db.flush()
    except StorageError as e:
        _reraise_as_conflict(db, e, title, image_id, message)

    logger.info("Forum image %s updated (%r)", image_id, title)


def delete_image(db: Session, image_id: int) -> None:
    with atomic(db):
        image = db.get(ForumImage, image_id)
        if image is None:
            raise NotFoundError("Imagen no encontrada")
        db.delete(image)
    logger.info("Forum image %s deleted", image_id)


def purge_duplicates(db: Session) -> dict:
    """Keep the newest record per title, then drop every orphan."""
    with atomic(db):
        lock_table(db, ForumImage.__table__)
        rows = db.execute(
            select(ForumImage.id, ForumImage.title).order_by(
                ForumImage.title, ForumImage.created_at.desc(), ForumImage.id.desc()
            )
        ).all()
        seen = set()
        stale = []
        for row in rows:
            if row.title in seen:
                stale.append(row.id)
            else:
                seen.add(row.title)
        deleted_by_title = 0
        if stale:
            deleted_by_title = db.execute(
                delete(ForumImage).where(ForumImage.id.in_(stale)),
                execution_options={"synchronize_session": False},
            ).rowcount or 0
        deleted_orphans = db.execute(
            delete(ForumImage).where(_is_orphan),
            execution_options={"synchronize_session": False},
        ).rowcount or 0

    logger.info("Forum cleanup: %d duplicate(s), %d orphan(s) removed", deleted_by_title, deleted_orphans)
    return {"deletedByTitle": deleted_by_title, "deletedOrphans": deleted_orphans}
