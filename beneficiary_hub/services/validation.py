from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from ..excel.export import normalize_birth_month
from ..models.beneficiary import to_text
from ..models.fields import FIELD_LABELS

"""Public application form validation.

validate_application returns field -> message; an empty dict means the
form may be submitted.
"""

__all__ = [
    "DEFAULT_MINIMUM_AGE",
    "REQUIRED_FIELDS",
    "ApplicationValidationError",
    "age_on",
    "parse_birth_date",
    "validate_application",
]

DEFAULT_MINIMUM_AGE = 18

REQUIRED_FIELDS = (
    "last_name",
    "first_name",
    "middle_name",
    "birth_month",
    "birth_day",
    "birth_year",
    "sex",
    "civil_status",
    "province",
    "city",
    "barangay",
)


class ApplicationValidationError(Exception):
    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"Please complete all required fields correctly ({detail})")


def parse_birth_date(month: Any, day: Any, year: Any) -> date | None:
    """Birth date from form parts; month may be a name or a number. None if not a real date."""
    mm = normalize_birth_month(month)
    try:
        return date(int(to_text(year)), int(mm), int(to_text(day)))
    except ValueError:
        return None


def age_on(birth: date, today: date) -> int:
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def validate_application(
    form: Mapping[str, Any],
    today: date | None = None,
    minimum_age: int = DEFAULT_MINIMUM_AGE,
) -> dict[str, str]:
    today = today or date.today()
    errors: dict[str, str] = {}
    for key in REQUIRED_FIELDS:
        if not to_text(form.get(key)):
            errors[key] = f"{FIELD_LABELS[key]} is required"

    middle = to_text(form.get("middle_name"))
    if len(middle) == 1 or (len(middle) == 2 and middle.endswith(".")):
        errors["middle_name"] = "Please enter complete middle name, not just an initial"

    parts = [to_text(form.get(k)) for k in ("birth_month", "birth_day", "birth_year")]
    if all(parts):
        birth = parse_birth_date(*parts)
        if birth is None:
            errors["birth_day"] = "Birth date is not a valid date"
        elif birth > today:
            errors["birth_year"] = "Birth date is in the future"
        elif age_on(birth, today) < minimum_age:
            errors["birth_year"] = f"Applicant must be {minimum_age} years or older"
    return errors
