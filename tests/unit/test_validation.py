from __future__ import annotations

from datetime import date

import pytest

from beneficiary_hub.services.validation import (
    REQUIRED_FIELDS,
    age_on,
    parse_birth_date,
    validate_application,
)

TODAY = date(2024, 6, 15)


def valid_form(**overrides):
    form = {
        "last_name": "Dela Cruz",
        "first_name": "Juan",
        "middle_name": "Santos",
        "birth_month": "March",
        "birth_day": "5",
        "birth_year": "1990",
        "sex": "Male",
        "civil_status": "Single",
        "province": "Laguna",
        "city": "Calamba",
        "barangay": "Uno",
    }
    form.update(overrides)
    return form


def test_valid_form_has_no_errors():
    assert validate_application(valid_form(), TODAY) == {}


def test_missing_required_fields():
    errors = validate_application({}, TODAY)
    assert set(errors) == set(REQUIRED_FIELDS)
    assert errors["last_name"] == "Last Name is required"
    assert errors["civil_status"] == "Civil Status is required"


def test_whitespace_counts_as_missing():
    errors = validate_application(valid_form(city="   "), TODAY)
    assert errors == {"city": "City is required"}


@pytest.mark.parametrize("middle", ["S", "S."])
def test_middle_initial_rejected(middle):
    errors = validate_application(valid_form(middle_name=middle), TODAY)
    assert errors["middle_name"] == "Please enter complete middle name, not just an initial"


def test_middle_name_of_two_letters_ok():
    assert validate_application(valid_form(middle_name="Su"), TODAY) == {}


def test_invalid_date():
    errors = validate_application(valid_form(birth_month="February", birth_day="30"), TODAY)
    assert errors == {"birth_day": "Birth date is not a valid date"}


def test_future_date():
    errors = validate_application(valid_form(birth_year="2030"), TODAY)
    assert "future" in errors["birth_year"]


def test_underage():
    errors = validate_application(valid_form(birth_month="06", birth_day="16", birth_year="2006"), TODAY)
    assert errors == {"birth_year": "Applicant must be 18 years or older"}
    # 誕生日当日に 18 歳
    assert validate_application(valid_form(birth_month="06", birth_day="15", birth_year="2006"), TODAY) == {}


def test_custom_minimum_age():
    errors = validate_application(valid_form(birth_year="2000"), TODAY, minimum_age=60)
    assert errors["birth_year"] == "Applicant must be 60 years or older"


def test_parse_birth_date_and_age():
    assert parse_birth_date("march", "5", "1990") == date(1990, 3, 5)
    assert parse_birth_date(3, 5.0, 1990.0) == date(1990, 3, 5)
    assert parse_birth_date("Smarch", "5", "1990") is None
    assert age_on(date(2000, 6, 16), TODAY) == 23
    assert age_on(date(2000, 6, 15), TODAY) == 24
