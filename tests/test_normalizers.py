from __future__ import annotations

import pytest

from identity_core.core.normalizers import normalize_email, normalize_phone


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Alice@Example.COM ", "alice@example.com"),
        ("john.doe+news@gmail.com", "john.doe@gmail.com"),
        ("Jane+x@GoogleMail.com", "jane@googlemail.com"),
        ("bob+tag@example.com", "bob+tag@example.com"),
        ("no-at-sign", "no-at-sign"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_email(raw: str | None, expected: str) -> None:
    assert normalize_email(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("01712345678", "+8801712345678"),
        ("+1 (555) 010-0000", "+15550100000"),
        ("555-0100", "5550100"),
        ("   ", None),
        (None, None),
    ],
)
def test_normalize_phone(raw: str | None, expected: str | None) -> None:
    assert normalize_phone(raw) == expected
