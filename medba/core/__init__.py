from .errors import MedbaError
from .security import SecurityValidator, UrlValidationResult

__all__ = ["MedbaError", "SecurityValidator", "UrlValidationResult"]
