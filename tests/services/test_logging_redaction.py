from __future__ import annotations

from app.core.logging import mask_email, redact_sensitive_fields


def test_mask_email_keeps_domain() -> None:
    assert mask_email("student@example.com") == "s***@example.com"
    assert mask_email("not-an-email") == "***"


def test_secrets_and_emails_are_redacted() -> None:
    event = redact_sensitive_fields(
        None,
        "info",
        {
            "event": "key_activated",
            "code": "XFLEX-ABCDE-FGHJK-MNPQR",
            "bound_email": "student@example.com",
            "key_id": 11,
        },
    )

    assert event == {
        "event": "key_activated",
        "code": "***",
        "bound_email": "s***@example.com",
        "key_id": 11,
    }


def test_non_string_email_field_is_left_alone() -> None:
    event = redact_sensitive_fields(None, "info", {"event": "feed_broadcast", "to": None})
    assert event["to"] is None
