"""Firestore handle and store error translation for the application."""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar, cast

from firebase_admin import firestore
from flask import current_app
from google.api_core.exceptions import GoogleAPIError

from .errors import StoreError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

F = TypeVar("F", bound=Callable[..., Any])


def get_db() -> Client:
    """Return the Firestore client owned by the current app."""
    db = current_app.extensions.get("firestore")
    if db is None:
        db = firestore.client()
        current_app.extensions["firestore"] = db
    return cast("Client", db)


def translate_store_errors(func: F) -> F:
    """Re-raise Firestore API failures as StoreError."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except GoogleAPIError as e:
            logging.error(f"Firestore call failed in {func.__name__}: {e}")
            raise StoreError() from e

    return cast(F, wrapper)
