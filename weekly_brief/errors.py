# weekly_brief/errors.py
"""
Domain exceptions raised by the pipeline services.

Each carries the HTTP status the API boundary should answer with; the
handlers in exception_handling.py turn them into ``{"error": message}``.
"""
from __future__ import annotations

from typing import Any, Dict


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra


class ValidationError(PipelineError):
    status_code = 400


class EditionExistsError(ValidationError):
    def __init__(self, edition_date: str, edition_id: int):
        super().__init__("Edition already exists for this date", edition_id=edition_id)
        self.edition_date = edition_date
        self.edition_id = edition_id


class EditionAlreadySentError(ValidationError):
    pass


class NotFoundError(PipelineError):
    status_code = 404


class AuthError(PipelineError):
    status_code = 401


class ForbiddenError(PipelineError):
    status_code = 403


class ConfigurationError(PipelineError):
    pass


class AIGenerationError(PipelineError):
    pass
