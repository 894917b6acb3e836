"""Application services: import, list operations, duplicates, teams, form links."""

from .authorization import Action, AuthorizationError, Decision, authorize, require
from .bulk import BulkOperationError, chunked, run_in_chunks
from .form_links import FormLinkError
from .teams import TeamError
from .validation import ApplicationValidationError

__all__ = [
    "Action",
    "AuthorizationError",
    "Decision",
    "authorize",
    "require",
    "BulkOperationError",
    "chunked",
    "run_in_chunks",
    "FormLinkError",
    "TeamError",
    "ApplicationValidationError",
]
