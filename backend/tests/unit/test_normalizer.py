"""Unit tests for field normalization and legacy date-of-birth migration."""

from __future__ import annotations

import pytest

from app.modules.records.normalizer import (
    normalize_date_separators,
    normalize_phone,
    normalize_record,
    split_legacy_dob,
)
from app.modules.records.schemas import Record


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("09012345678", "090-1234-5678"),
        ("0312345678", "031-234-5678"),
        ("12345", "12345"),
        ("090 1234 5678", "090-1234-5678"),
        ("(03) 1234-5678", "031-234-5678"),
        ("+81 90 1234 5678", "+81 90 1234 5678"),  # 12 digits: untouched
        ("", ""),
        ("不明", "不明"),
        ("０９０１２３４５６７８", "０９０１２３４５６７８"),  # full-width digits: untouched
    ],
)
def test_normalize_phone(raw: str, expected: str) -> None:
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize(
    "phone",
    ["09012345678", "0312345678", "12345", "090-1234-5678", "abc", ""],
)
def test_normalize_record_is_idempotent(phone: str) -> None:
    record = Record(name="Taro", phone=phone)
    once = normalize_record(record)
    assert normalize_record(once) == once


def test_normalize_record_only_touches_phone() -> None:
    record = Record(name=" Taro ", phone="09012345678", dob_year="1990", card_number="0001")
    normalized = normalize_record(record)

    assert normalized.phone == "090-1234-5678"
    assert normalized.model_dump(exclude={"phone"}) == record.model_dump(exclude={"phone"})


def test_normalize_record_returns_new_object() -> None:
    record = Record(phone="09012345678")
    normalize_record(record)
    assert record.phone == "09012345678"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1990-01-02", "1990/01/02"), ("1990.1.2", "1990/1/2"), ("1990/01/02", "1990/01/02")],
)
def test_normalize_date_separators(raw: str, expected: str) -> None:
    assert normalize_date_separators(raw) == expected


def test_split_legacy_dob() -> None:
    migrated = split_legacy_dob({"name": "Taro", "dob": "1990-01-02"})

    assert "dob" not in migrated
    assert migrated["dobYear"] == "1990"
    assert migrated["dobMonth"] == "01"
    assert migrated["dobDay"] == "02"


def test_split_legacy_dob_keeps_unsplittable_value() -> None:
    migrated = split_legacy_dob({"dob": "平成2年1月2日"})
    assert migrated["dobYear"] == "平成2年1月2日"
    assert migrated["dobMonth"] == ""


def test_split_legacy_dob_without_dob_is_untouched() -> None:
    data = {"dobYear": "1990"}
    assert split_legacy_dob(data) is data
