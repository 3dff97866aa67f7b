"""
Main entry point for the course claim platform.
"""

import argparse
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from .api.rest_api import CourseClaimRestAPI
from .config import configure_logging, load_config, validate_config, DEFAULT_CONFIG
from .core.enums import Role
from .core.exceptions import AlreadyClaimedError, AlreadyEnrolledError
from .persistence import DatabaseFactory
from .services import (
    AccessCodeGenerator, AuditRecorder, CourseClaimWorkflow, EnrollmentRegistry, ProfileService,
)

logger = logging.getLogger(__name__)


class CourseClaimPlatform:
    """Wires storage, services and the REST API together."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = dict(DEFAULT_CONFIG)
        self._config.update(config or {})
        validate_config(self._config)
        self._database = None
        self._rest_api = None

        # Initialize platform
        self._initialize_platform()

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        db_type = self._config['database_type']
        self._database = DatabaseFactory.create_database(db_type, **self._config['database_config'])
        logger.info("Database initialized: %s", db_type)

        code_generator = AccessCodeGenerator(
            prefix=self._config['access_code_prefix'],
            suffix_length=int(self._config['access_code_suffix_length']),
        )
        self.audit_recorder = AuditRecorder(self._database)
        self.profile_service = ProfileService(self._database)
        self.course_workflow = CourseClaimWorkflow(
            self._database,
            self.audit_recorder,
            code_generator=code_generator,
            max_code_attempts=int(self._config['access_code_attempts']),
        )
        self.enrollment_registry = EnrollmentRegistry(self._database)

        self._rest_api = CourseClaimRestAPI(
            self.profile_service,
            self.course_workflow,
            self.enrollment_registry,
            self.audit_recorder,
        )
        logger.info("Services and REST API initialized")

    @property
    def database(self):
        return self._database

    @property
    def app(self):
        return self._rest_api.app

    def start_rest_server(self, host: Optional[str] = None, port: Optional[int] = None):
        """Run the REST server until interrupted."""
        import uvicorn

        host = host or self._config['rest_host']
        port = port or int(self._config['rest_port'])
        logger.info("Starting REST server on %s:%s", host, port)
        uvicorn.run(self.app, host=host, port=port,
                    log_level=str(self._config['log_level']).lower())

    def run_demo(self) -> Dict[str, Any]:
        """Walk through creating, claiming and enrolling into one course."""
        admin = self.profile_service.bootstrap_admin("admin@demo.example", username="admin")
        admin_identity = admin.identity()
        teacher_a = self.profile_service.create_profile(admin_identity, "teacher.a@demo.example",
                                                        Role.TEACHER)
        teacher_b = self.profile_service.create_profile(admin_identity, "teacher.b@demo.example",
                                                        Role.TEACHER)
        student = self.profile_service.create_profile(admin_identity, "student@demo.example",
                                                      Role.STUDENT)

        course = self.course_workflow.create_course(admin_identity, "Databases 101", "DB101")
        logger.info("Created %s with access code %s", course.name, course.access_code)

        claimed = self.course_workflow.claim_course(teacher_a.identity(), course.access_code)
        rejected_claim = None
        try:
            self.course_workflow.claim_course(teacher_b.identity(), course.access_code)
        except AlreadyClaimedError as e:
            rejected_claim = e.message

        enrollment = self.enrollment_registry.enroll(teacher_a.identity(), course.id, student.id)
        rejected_enrollment = None
        try:
            self.enrollment_registry.enroll(teacher_a.identity(), course.id, student.id)
        except AlreadyEnrolledError as e:
            rejected_enrollment = e.message

        return {
            'course': claimed.to_dict(),
            'rejected_claim': rejected_claim,
            'enrollment': enrollment.to_dict(),
            'rejected_enrollment': rejected_enrollment,
            'audit_log': [entry.to_dict() for entry in self.audit_recorder.list_entries()],
        }

    def stop_platform(self):
        """Release storage resources."""
        if self._database is not None:
            self._database.close()
            logger.info("Platform stopped")


def run_demo_platform(config: Dict[str, Any]) -> Dict[str, Any]:
    """Run the demo against a throwaway SQLite database, leaving the configured one alone."""
    with tempfile.TemporaryDirectory() as tmpdir:
        demo_config = dict(config)
        demo_config['database_type'] = 'sqlite'
        demo_config['database_config'] = {
            'database_path': os.path.join(tmpdir, 'demo_courseclaim.db'),
        }
        platform = CourseClaimPlatform(demo_config)
        try:
            return platform.run_demo()
        finally:
            platform.stop_platform()


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Course Claim Platform")
    parser.add_argument("--host", type=str, default=None, help="REST server host")
    parser.add_argument("--rest-port", type=int, default=None, help="REST server port")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")
    parser.add_argument("--config", type=str, help="Configuration file path")
    parser.add_argument("--bootstrap-admin", type=str, metavar="EMAIL",
                        help="Create an administrator profile and print its id")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config['log_level'])

    if args.demo:
        result = run_demo_platform(config)
        logger.info("Demo course: %s", result['course'])
        logger.info("Second claim rejected: %s", result['rejected_claim'])
        logger.info("Second enrollment rejected: %s", result['rejected_enrollment'])
        return

    platform = CourseClaimPlatform(config)
    try:
        if args.bootstrap_admin:
            admin = platform.profile_service.bootstrap_admin(args.bootstrap_admin)
            print(admin.id)
        else:
            platform.start_rest_server(args.host, args.rest_port)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        platform.stop_platform()


if __name__ == "__main__":
    main()
