"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import request
from flask_login import current_user

from db_stores import ProfileStoreDB
from errors import InvalidRequestError, NotFoundError, PremiumRequiredError

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


def current_user_id() -> int:
    """Return the current authenticated user's ID."""
    return current_user.id


def current_profile():
    from profile_cache import load_profile
    profile = load_profile(current_user_id())
    if profile is None:
        raise NotFoundError("Perfil não encontrado.")
    return profile


def pro_required(feature: str) -> Callable:
    """Decorator that gates a route behind the Pro plan."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            # straight from the row; cached profiles can lag writes from other workers
            profile = ProfileStoreDB(current_user_id()).load()
            if profile is None:
                raise NotFoundError("Perfil não encontrado.")
            if not profile.is_pro:
                raise PremiumRequiredError(feature)
            return f(*args, **kwargs)
        return decorated
    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError("O corpo da requisição deve ser um objeto JSON.")
    return data


def int_field(data: dict, name: str, default: int | None = None) -> int:
    value = data.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Campo '{name}' deve ser um número inteiro.")


def bool_field(data: dict, name: str, default: bool = False) -> bool:
    value = data.get(name, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise InvalidRequestError(f"Campo '{name}' deve ser verdadeiro ou falso.")
