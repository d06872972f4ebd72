"""User-facing message catalogue (Spanish fallback, English secondary)."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

DEFAULT_LOCALE = "es"

_CATALOGUES: Dict[str, Mapping[str, str]] = {
    "es": {
        "limiter.locked": "Demasiados intentos. Espere {seconds} segundos.",
        "limiter.lockout_started": (
            "Demasiados intentos fallidos. Por favor, espere {seconds} segundos "
            "antes de intentar nuevamente."
        ),
        "limiter.low_attempts": "Quedan {remaining} intentos antes del bloqueo temporal.",
        "network.exhausted": (
            "No se pudo conectar con el servidor después de varios intentos. "
            "Por favor, verifique su conexión a internet e intente nuevamente."
        ),
        "error.connection": "Error de conexión a internet",
        "error.timeout": "La solicitud tardó demasiado tiempo",
        "error.server_status": "Error del servidor: {status}",
        "error.unknown": "Error desconocido",
        "classify.network": "Error de conexión. Verifique su internet e intente nuevamente.",
        "classify.timeout": "La solicitud tardó demasiado. Intente nuevamente.",
        "classify.authentication": "Credenciales inválidas. Verifique sus datos.",
        "classify.server": "Error en el servidor. Intente más tarde.",
        "classify.validation": "Datos inválidos. Verifique la información ingresada.",
        "classify.unknown": "Ocurrió un error inesperado. Intente nuevamente.",
        "auth.retrying": "Reintentando ({attempt}/{max_retries}) en {seconds:.1f} s: {error}",
        "auth.login_success": "Sesión iniciada correctamente.",
        "auth.register_success": "Registro completado correctamente.",
    },
    "en": {
        "limiter.locked": "Too many attempts. Please wait {seconds} seconds.",
        "limiter.lockout_started": (
            "Too many failed attempts. Please wait {seconds} seconds before "
            "trying again."
        ),
        "limiter.low_attempts": "{remaining} attempts left before a temporary lockout.",
        "network.exhausted": (
            "Could not reach the server after several attempts. "
            "Please check your internet connection and try again."
        ),
        "error.connection": "Internet connection error",
        "error.timeout": "The request took too long",
        "error.server_status": "Server error: {status}",
        "error.unknown": "Unknown error",
        "classify.network": "Connection error. Check your internet and try again.",
        "classify.timeout": "The request took too long. Try again.",
        "classify.authentication": "Invalid credentials. Check your details.",
        "classify.server": "Server error. Try again later.",
        "classify.validation": "Invalid data. Check the information you entered.",
        "classify.unknown": "An unexpected error occurred. Try again.",
        "auth.retrying": "Retrying ({attempt}/{max_retries}) in {seconds:.1f} s: {error}",
        "auth.login_success": "Signed in successfully.",
        "auth.register_success": "Registration completed successfully.",
    },
}


def resolve_locale(locale: Optional[str] = None) -> str:
    """Return a supported locale code, falling back to :data:`DEFAULT_LOCALE`."""

    if locale is None:
        from config.config import settings

        locale = settings.locale
    code = str(locale).strip().lower().split("_")[0].split("-")[0]
    return code if code in _CATALOGUES else DEFAULT_LOCALE


def translate(key: str, locale: Optional[str] = None, **params: Any) -> str:
    """Format the template registered under *key* for *locale*.

    Unknown keys raise :class:`KeyError` so typos surface in tests instead of
    leaking raw keys to users.
    """

    template = _CATALOGUES[resolve_locale(locale)][key]
    return template.format(**params) if params else template


__all__ = ["DEFAULT_LOCALE", "resolve_locale", "translate"]
