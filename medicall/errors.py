class CrmError(Exception):
    """Base de los errores de dominio del CRM."""


class ValidationFailed(CrmError):
    """Datos de formulario incompletos o inválidos. Se aborta antes de mutar."""


class LockedEventError(CrmError):
    """Intento de mover, borrar o reportar una CITA."""


class NotFoundError(CrmError, LookupError):
    pass


class RemoteUnavailable(CrmError):
    """
    La API remota no respondió: timeout, error de red, status no-2xx
    o payload que no se puede interpretar.
    """
