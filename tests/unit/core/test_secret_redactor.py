from app.core.logging import secret_redactor


def test_top_level_secrets_are_redacted():
    event = secret_redactor(None, "info", {
        "event": "profile_loaded",
        "client_secret": "hunter2",
        "aws_secret_access_key": "wJalr",
        "profile": "prod",
    })
    assert event["client_secret"] == "[REDACTED]"
    assert event["aws_secret_access_key"] == "[REDACTED]"
    assert event["profile"] == "prod"


def test_nested_secrets_are_redacted():
    event = secret_redactor(None, "info", {
        "event": "verify",
        "details": {"service_account_json": "{...}", "project_id": "p1"},
    })
    assert event["details"]["service_account_json"] == "[REDACTED]"
    assert event["details"]["project_id"] == "p1"
