"""
Error taxonomy for Nexus Study.

Every error a user can see carries a pt-BR message and the HTTP status the
JSON layer should answer with. The Flask app renders them through a single
error handler registered in app.py.
"""

from __future__ import annotations


class StudyAppError(Exception):
    """Base class for errors surfaced to the student."""

    status_code = 500
    default_message = "Algo deu errado. Tente novamente."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ConfigurationError(StudyAppError):
    """Missing or invalid configuration (API keys, secrets)."""

    status_code = 500
    default_message = "Configuração inválida."


class InvalidRequestError(StudyAppError):
    status_code = 400
    default_message = "Requisição inválida."


class NotFoundError(StudyAppError):
    status_code = 404
    default_message = "Não encontrado."


class PremiumRequiredError(StudyAppError):
    status_code = 403
    default_message = "Recurso exclusivo para assinantes Pro."

    def __init__(self, feature: str = "", message: str | None = None):
        self.feature = feature
        if message is None and feature:
            message = f"Desbloqueie {feature} com o Nexus Pro."
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "premium_required": True, "feature": self.feature}


class AIServiceError(StudyAppError):
    """Transport or provider failure from the AI backend."""

    status_code = 502
    default_message = "O serviço de IA está indisponível no momento."


class RateLimitedError(AIServiceError):
    status_code = 429
    default_message = "Limite do serviço de IA atingido temporariamente. Tente novamente em instantes."


class GenerationError(AIServiceError):
    """The AI answered, but not with something we can use."""

    status_code = 502
    default_message = "Falha ao gerar conteúdo com a IA."
