import re
from typing import Optional

_RUT_NOISE = re.compile(r"[^0-9Kk]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_RUT_LENGTH = 7


def clean_rut(rut: str) -> str:
    return _RUT_NOISE.sub("", str(rut)).upper()


def format_rut(rut):
    """Return ``12.345.678-5`` style RUT, or the input untouched when too short."""
    if not rut:
        return rut
    cleaned = clean_rut(rut)
    if len(cleaned) < MIN_RUT_LENGTH:
        return rut
    body, dv = cleaned[:-1], cleaned[-1]
    groups = []
    while body:
        groups.insert(0, body[-3:])
        body = body[:-3]
    return f"{'.'.join(groups)}-{dv}"


def rut_check_digit(body: str) -> str:
    s = 0
    factor = 2
    for d in reversed(body):
        s += int(d) * factor
        factor = 2 if factor == 7 else factor + 1
    mod = 11 - (s % 11)
    return "0" if mod == 11 else "K" if mod == 10 else str(mod)


def rut_is_valid(rut: Optional[str]) -> bool:
    if not rut:
        return False
    cleaned = clean_rut(rut)
    if len(cleaned) < MIN_RUT_LENGTH:
        return False
    body, dv = cleaned[:-1], cleaned[-1]
    if not body.isdigit():
        return False
    return dv == rut_check_digit(body)


def mask_rut(rut: str) -> str:
    cleaned = clean_rut(rut or "")
    if len(cleaned) < 2:
        return "***"
    num, dv = cleaned[:-1], cleaned[-1]
    if len(num) <= 3:
        return f"***-{dv}"
    return f"{num[:-3] + '***'}-{dv}"


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(_EMAIL.match(value))


def image_mime_type(data_url: str) -> Optional[str]:
    # data:image/png;base64,....
    if not data_url or not data_url.startswith("data:"):
        return None
    head = data_url.split(",", 1)[0].split(";", 1)[0]
    return head.split(":", 1)[1] or None
