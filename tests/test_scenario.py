import logging

import pytest

from courseclaim.main import CourseClaimPlatform, main


@pytest.fixture()
def platform(tmp_path):
    platform = CourseClaimPlatform({
        'database_type': 'sqlite',
        'database_config': {'database_path': str(tmp_path / "demo.db")},
    })
    yield platform
    platform.stop_platform()


def test_databases_101_walkthrough(platform):
    result = platform.run_demo()

    course = result['course']
    assert course['name'] == "Databases 101"
    assert course['state'] == "claimed"
    assert result['rejected_claim'] == "This access code has already been claimed by another teacher."
    assert result['enrollment']['course_id'] == course['id']
    assert result['rejected_enrollment'] == "The student is already enrolled in this course."

    actions = [entry['action'] for entry in result['audit_log']]
    assert sorted(actions) == ["CLAIM_COURSE", "CREATE_COURSE"]
    assert platform.audit_recorder.failed_writes == 0


def test_bootstrap_admin_command(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("COURSECLAIM_DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("COURSECLAIM_LOG_LEVEL", "WARNING")
    package_logger = logging.getLogger("courseclaim")
    monkeypatch.setattr(package_logger, "handlers", [])
    monkeypatch.setattr(package_logger, "level", package_logger.level)

    main(["--bootstrap-admin", "root@example.edu"])

    admin_id = capsys.readouterr().out.strip()
    platform = CourseClaimPlatform({'database_config': {'database_path': str(tmp_path / "cli.db")}})
    try:
        assert platform.profile_service.resolve_identity(admin_id).is_admin
    finally:
        platform.stop_platform()


def test_demo_command_can_run_repeatedly(tmp_path, monkeypatch):
    configured = tmp_path / "configured.db"
    monkeypatch.setenv("COURSECLAIM_DATABASE_PATH", str(configured))
    monkeypatch.setenv("COURSECLAIM_LOG_LEVEL", "WARNING")
    package_logger = logging.getLogger("courseclaim")
    monkeypatch.setattr(package_logger, "handlers", [])
    monkeypatch.setattr(package_logger, "level", package_logger.level)

    main(["--demo"])
    main(["--demo"])

    assert not configured.exists()
