"""Unit tests for export audit logging."""

import json

import pytest

from scripts import audit


@pytest.fixture
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide isolated audit directory for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "export-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file


def test_log_export_event_creates_restricted_file(temp_audit_dir):
    audit_dir, audit_file = temp_audit_dir

    audit.log_export_event("export_started", "demo", operator="cron", details={"page_size": 200})

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600
    assert audit_dir.stat().st_mode & 0o777 == 0o700


def test_log_export_event_fields(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_export_event("export_completed", "demo", details={"pages": 3, "users": 450})

    event = json.loads(audit_file.read_text().strip())
    assert event["event_type"] == "export_completed"
    assert event["realm"] == "demo"
    assert event["operator"] == "system"
    assert event["success"] is True
    assert event["details"] == {"pages": 3, "users": 450}
    assert len(event["signature"]) == 64


def test_verify_detects_tampering(temp_audit_dir):
    _, audit_file = temp_audit_dir
    audit.log_export_event("export_started", "demo")
    audit.log_export_event("export_completed", "demo", details={"pages": 1})

    lines = audit_file.read_text().splitlines()
    tampered = json.loads(lines[1])
    tampered["details"]["pages"] = 99
    audit_file.write_text(lines[0] + "\n" + json.dumps(tampered) + "\n")

    assert audit.verify_audit_log() == (2, 1)


def test_unsigned_when_key_empty(temp_audit_dir, monkeypatch):
    _, audit_file = temp_audit_dir
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")

    audit.log_export_event("export_failed", "demo", success=False)

    assert "signature" not in json.loads(audit_file.read_text())


def test_verify_missing_log(temp_audit_dir):
    assert audit.verify_audit_log() == (0, 0)


def test_safe_log_reports_failure(monkeypatch, capsys):
    def boom(*args, **kwargs):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(audit, "log_export_event", boom)

    assert audit.safe_log_export_event("export_started", "demo") is False
    assert "read-only filesystem" in capsys.readouterr().err
