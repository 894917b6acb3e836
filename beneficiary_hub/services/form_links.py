from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any
from urllib.parse import urlsplit

from ..db.store import DocumentStore, NotFoundError, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.beneficiary import BeneficiaryRecord, to_text
from ..models.fields import FIELD_KEYS
from ..models.processing_result import PromotionResult
from ..models.team import ANONYMOUS, FormLink, Session
from .authorization import Action, require
from .beneficiaries import search_records
from .validation import DEFAULT_MINIMUM_AGE, ApplicationValidationError, validate_application

"""Form links, public submissions and their promotion into the beneficiary list.

A form link is a named entry point for the public application form of one
team: ``<base_url>/apply/<team_id>/<link_id>``. Submissions are kept apart
from beneficiary records until a team member promotes (copies) them.
"""

__all__ = [
    "FormLinkError",
    "create_form_link",
    "delete_form_link",
    "form_link_url",
    "list_form_links",
    "list_submissions",
    "parse_form_link_url",
    "promote_submission",
    "promote_submissions",
    "search_submissions",
    "sort_submissions",
    "submit_application",
]

logger = logging.getLogger(__name__)


class FormLinkError(Exception):
    pass


def create_form_link(store: DocumentStore, session: Session, name: str) -> FormLink:
    require(store, session, Action.MANAGE_FORM_LINKS, session.team_id)
    name = (name or "").strip()
    if not name:
        raise FormLinkError("form link name must not be empty")
    doc = store.insert("form_links", [{"team_id": session.team_id, "name": name}])[0]
    logger.info("form link created: %s (%s)", name, doc["id"])
    return FormLink.from_document(doc)


def list_form_links(store: DocumentStore, session: Session) -> list[FormLink]:
    """Links of the session's team, newest first, with their submission counts."""
    require(store, session, Action.READ_TEAM, session.team_id)
    docs = store.find("form_links", {"team_id": session.team_id}, order_by="created_at", descending=True)
    return [
        FormLink.from_document(d, submissions_count=store.count("form_submissions", {"form_link_id": d["id"]}))
        for d in docs
    ]


def _team_link(store: DocumentStore, team_id: str | None, link_id: str) -> dict[str, Any]:
    link = store.get("form_links", link_id)
    if link["team_id"] != team_id:
        raise NotFoundError(f"form_links: {link_id} is not part of team {team_id}")
    return link


def delete_form_link(store: DocumentStore, session: Session, link_id: str) -> int:
    """Delete a link and all of its submissions; returns the number of submissions removed."""
    require(store, session, Action.MANAGE_FORM_LINKS, session.team_id)
    _team_link(store, session.team_id, link_id)
    removed = store.delete_where("form_submissions", {"form_link_id": link_id})
    store.delete("form_links", [link_id])
    logger.info("form link deleted: %s (%d submissions)", link_id, removed)
    return removed


def form_link_url(base_url: str, team_id: str, link_id: str | None = None) -> str:
    url = f"{base_url.rstrip('/')}/apply/{team_id}"
    if link_id:
        url += f"/{link_id}"
    return url


def parse_form_link_url(url: str) -> tuple[str, str | None]:
    """(team_id, link_id) from a public form URL."""
    parts = [p for p in urlsplit(url).path.split("/") if p]
    try:
        idx = len(parts) - 1 - parts[::-1].index("apply")
    except ValueError:
        raise FormLinkError(f"not a form link URL: {url}") from None
    rest = parts[idx + 1:]
    if not rest or len(rest) > 2:
        raise FormLinkError(f"not a form link URL: {url}")
    return rest[0], (rest[1] if len(rest) == 2 else None)


def submit_application(
    store: DocumentStore,
    team_id: str,
    link_id: str | None,
    form: Mapping[str, Any],
    submission_id: str | None = None,
    *,
    today: date | None = None,
    minimum_age: int = DEFAULT_MINIMUM_AGE,
) -> BeneficiaryRecord:
    """Create (or, with ``submission_id``, update) one public submission.

    Raises:
        ApplicationValidationError: with per-field messages
        AuthorizationError: when the link does not exist or belongs elsewhere
    """
    require(store, ANONYMOUS, Action.SUBMIT_APPLICATION, team_id, form_link_id=link_id)
    errors = validate_application(form, today, minimum_age)
    if errors:
        raise ApplicationValidationError(errors)

    values = {k: v for k, v in form.items() if k in FIELD_KEYS}
    record = BeneficiaryRecord.from_values(values, team_id=team_id, form_link_id=link_id)
    if record.amount is None:
        record.amount = 0.0
    doc = record.to_document()

    if submission_id is None:
        saved = store.insert("form_submissions", [doc])[0]
        logger.info("submission received: link=%s id=%s", link_id, saved["id"])
        return BeneficiaryRecord.from_document(saved)

    existing = store.get("form_submissions", submission_id)
    if existing["form_link_id"] != link_id or existing["team_id"] != team_id:
        raise NotFoundError(f"form_submissions: {submission_id} does not belong to this form link")
    doc.pop("team_id")
    doc.pop("form_link_id")
    doc["updated_at"] = datetime.now(UTC)
    store.update("form_submissions", [submission_id], doc)
    return BeneficiaryRecord.from_document(store.get("form_submissions", submission_id))


def list_submissions(store: DocumentStore, session: Session, link_id: str) -> list[BeneficiaryRecord]:
    """Submissions of one link, newest first."""
    require(store, session, Action.READ_RECORDS, session.team_id)
    _team_link(store, session.team_id, link_id)
    docs = store.find("form_submissions", {"form_link_id": link_id}, order_by="created_at", descending=True)
    return [BeneficiaryRecord.from_document(d) for d in docs]


def search_submissions(submissions: Sequence[BeneficiaryRecord], query: str) -> list[BeneficiaryRecord]:
    return search_records(submissions, query)


def sort_submissions(
    submissions: Sequence[BeneficiaryRecord], field_key: str, direction: str = "asc"
) -> list[BeneficiaryRecord]:
    """Sort by one field; blank values always go last."""
    if field_key not in FIELD_KEYS:
        raise FormLinkError(f"unknown sort field: {field_key!r}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"invalid sort direction: {direction!r}")

    def blank(r: BeneficiaryRecord) -> bool:
        value = getattr(r, field_key)
        return value is None or to_text(value) == ""

    filled = [r for r in submissions if not blank(r)]
    empty = [r for r in submissions if blank(r)]
    if field_key == "amount":
        filled.sort(key=lambda r: float(r.amount or 0), reverse=direction == "desc")
    else:
        filled.sort(key=lambda r: to_text(getattr(r, field_key)).lower(), reverse=direction == "desc")
    return filled + empty


def _promotion_doc(submission: BeneficiaryRecord, team_id: str) -> dict[str, Any]:
    doc = submission.schema_values()
    doc["team_id"] = team_id
    doc["form_link_id"] = submission.form_link_id
    return doc


def promote_submission(store: DocumentStore, session: Session, submission_id: str) -> BeneficiaryRecord:
    """Copy one submission into the team's beneficiary list."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    submission = BeneficiaryRecord.from_document(store.get("form_submissions", submission_id))
    if submission.team_id != session.team_id:
        raise NotFoundError(f"form_submissions: {submission_id} is not part of team {session.team_id}")
    saved = store.insert("beneficiaries", [_promotion_doc(submission, session.team_id or "")])[0]
    return BeneficiaryRecord.from_document(saved)


def promote_submissions(
    store: DocumentStore,
    session: Session,
    submission_ids: Sequence[str],
    *,
    errors: ErrorLogBuffer | None = None,
) -> PromotionResult:
    """Copy many submissions, each on its own; failures are counted, not raised."""
    require(store, session, Action.WRITE_RECORDS, session.team_id)
    succeeded = 0
    failed_ids: list[str] = []
    for submission_id in submission_ids:
        try:
            promote_submission(store, session, submission_id)
            succeeded += 1
        except StoreError as e:
            failed_ids.append(submission_id)
            logger.warning("promote %s failed: %s", submission_id, e)
            if errors is not None:
                errors.record("promote", "PROMOTION_FAILED", f"{submission_id}: {e}")
    logger.info("promoted %d submissions (%d failed)", succeeded, len(failed_ids))
    return PromotionResult(succeeded=succeeded, failed=len(failed_ids), failed_ids=tuple(failed_ids))
