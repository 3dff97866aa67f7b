"""
REST API for the course claim platform using FastAPI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..core.entities import AuditLogEntry, Course, Enrollment, IdentityContext, Profile
from ..core.enums import Role
from ..core.exceptions import (
    AlreadyClaimedError, AlreadyEnrolledError, AuthenticationError,
    CodeGenerationExhaustedError, ConfigurationError, CourseClaimException,
    DuplicateEntityError, ForbiddenError, PredicateFailedError, ResourceNotFoundError,
    StorageError, ValidationError,
)
from ..services import AuditRecorder, CourseClaimWorkflow, EnrollmentRegistry, ProfileService


ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ResourceNotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyClaimedError: status.HTTP_409_CONFLICT,
    AlreadyEnrolledError: status.HTTP_409_CONFLICT,
    DuplicateEntityError: status.HTTP_409_CONFLICT,
    PredicateFailedError: status.HTTP_409_CONFLICT,
    CodeGenerationExhaustedError: status.HTTP_503_SERVICE_UNAVAILABLE,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(error: CourseClaimException) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Pydantic models for API
class ProfileCreate(BaseModel):
    email: str = Field(..., max_length=255)
    role: Role
    phone: Optional[str] = Field(None, max_length=32)
    teacher_id: Optional[str] = Field(None, max_length=64)
    voucher_number: Optional[str] = Field(None, max_length=64)
    username: Optional[str] = Field(None, max_length=100)


class ProfileResponse(BaseModel):
    id: str
    email: str
    role: str
    phone: Optional[str] = None
    teacher_id: Optional[str] = None
    voucher_number: Optional[str] = None
    username: Optional[str] = None
    created_at: datetime


class CourseCreate(BaseModel):
    name: str
    code: Optional[str] = None


class CourseClaim(BaseModel):
    access_code: str
    name: Optional[str] = None
    code: Optional[str] = None


class CourseResponse(BaseModel):
    id: str
    name: str
    code: Optional[str] = None
    access_code: str
    teacher_id: Optional[str] = None
    state: str
    created_at: datetime
    updated_at: datetime


class AccessCodeResponse(BaseModel):
    course_id: str
    access_code: str


class EnrollmentCreate(BaseModel):
    student_id: str = Field(..., min_length=1)


class EnrollmentResponse(BaseModel):
    id: str
    course_id: str
    student_id: str
    grade: Optional[str] = None
    created_at: datetime


class AuditLogResponse(BaseModel):
    id: str
    actor_id: str
    action: str
    entity: str
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class CourseClaimRestAPI:
    """REST API exposing the claim and enrollment workflows."""

    def __init__(self, profile_service: ProfileService, course_workflow: CourseClaimWorkflow,
                 enrollment_registry: EnrollmentRegistry, audit_recorder: AuditRecorder):
        self._profiles = profile_service
        self._courses = course_workflow
        self._enrollments = enrollment_registry
        self._audit = audit_recorder

        # Create FastAPI app
        self.app = FastAPI(
            title="Course Claim API",
            description="Course access codes, claiming and enrollment",
            version=__version__,
            docs_url="/docs",
            redoc_url="/redoc"
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self.app.add_exception_handler(CourseClaimException, self._handle_error)

        # Setup routes
        self._setup_routes()

    @staticmethod
    async def _handle_error(request: Request, exc: CourseClaimException) -> JSONResponse:
        return JSONResponse(
            status_code=status_code_for(exc),
            content={"error": exc.error_code, "message": exc.message},
        )

    def _setup_routes(self):
        """Setup API routes."""

        def current_identity(x_actor_id: Optional[str] = Header(default=None)) -> IdentityContext:
            return self._profiles.resolve_identity(x_actor_id)

        @self.app.get("/", response_model=Dict[str, str])
        def root():
            """Root endpoint."""
            return {
                "message": "Course Claim API",
                "version": __version__,
                "docs": "/docs"
            }

        @self.app.get("/health", response_model=Dict[str, str])
        def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

        # Profile endpoints
        @self.app.get("/me", response_model=ProfileResponse)
        def get_me(identity: IdentityContext = Depends(current_identity)):
            return self._profile_to_response(self._profiles.get_profile(identity.actor_id))

        @self.app.post("/profiles", response_model=ProfileResponse,
                       status_code=status.HTTP_201_CREATED)
        def create_profile(profile_data: ProfileCreate,
                           identity: IdentityContext = Depends(current_identity)):
            """Provision a student or teacher."""
            profile = self._profiles.create_profile(
                identity,
                email=profile_data.email,
                role=profile_data.role,
                phone=profile_data.phone,
                teacher_id=profile_data.teacher_id,
                voucher_number=profile_data.voucher_number,
                username=profile_data.username,
            )
            return self._profile_to_response(profile)

        @self.app.get("/profiles", response_model=List[ProfileResponse])
        def list_profiles(role: Optional[Role] = None,
                          identity: IdentityContext = Depends(current_identity)):
            return [self._profile_to_response(p) for p in self._profiles.list_profiles(identity, role)]

        # Course endpoints
        @self.app.post("/courses", response_model=CourseResponse,
                       status_code=status.HTTP_201_CREATED)
        def create_course(course_data: CourseCreate,
                          identity: IdentityContext = Depends(current_identity)):
            """Administrator creates an unclaimed course."""
            course = self._courses.create_course(identity, course_data.name, course_data.code)
            return self._course_to_response(course)

        @self.app.post("/courses/self-service", response_model=CourseResponse,
                       status_code=status.HTTP_201_CREATED)
        def create_and_claim_course(course_data: CourseCreate,
                                    identity: IdentityContext = Depends(current_identity)):
            """Teacher creates a course that is claimed from the start."""
            course = self._courses.create_and_claim_course(identity, course_data.name,
                                                           course_data.code)
            return self._course_to_response(course)

        @self.app.post("/courses/claim", response_model=CourseResponse)
        def claim_course(claim_data: CourseClaim,
                         identity: IdentityContext = Depends(current_identity)):
            """Teacher redeems an access code."""
            course = self._courses.claim_course(identity, claim_data.access_code,
                                                claim_data.name, claim_data.code)
            return self._course_to_response(course)

        @self.app.get("/courses", response_model=List[CourseResponse])
        def list_courses(identity: IdentityContext = Depends(current_identity)):
            """All courses for administrators, own courses for teachers."""
            if identity.is_teacher:
                courses = self._courses.list_teacher_courses(identity)
            else:
                courses = self._courses.list_courses(identity)
            return [self._course_to_response(course) for course in courses]

        @self.app.get("/courses/search", response_model=List[CourseResponse])
        def search_courses(q: str = Query("", max_length=100),
                           identity: IdentityContext = Depends(current_identity)):
            courses = self._courses.search_courses(identity, q)
            return [self._course_to_response(course) for course in courses]

        @self.app.get("/courses/{course_id}", response_model=CourseResponse)
        def get_course(course_id: str, identity: IdentityContext = Depends(current_identity)):
            return self._course_to_response(self._courses.get_course(identity, course_id))

        @self.app.put("/courses/{course_id}", response_model=CourseResponse)
        def update_course(course_id: str, course_data: CourseCreate,
                          identity: IdentityContext = Depends(current_identity)):
            course = self._courses.update_course(identity, course_id, course_data.name,
                                                 course_data.code)
            return self._course_to_response(course)

        @self.app.post("/courses/{course_id}/access-code", response_model=AccessCodeResponse)
        def regenerate_access_code(course_id: str,
                                   identity: IdentityContext = Depends(current_identity)):
            access_code = self._courses.regenerate_access_code(identity, course_id)
            return AccessCodeResponse(course_id=course_id, access_code=access_code)

        # Enrollment endpoints
        @self.app.post("/courses/{course_id}/enrollments", response_model=EnrollmentResponse,
                       status_code=status.HTTP_201_CREATED)
        def enroll_student(course_id: str, enrollment_data: EnrollmentCreate,
                           identity: IdentityContext = Depends(current_identity)):
            enrollment = self._enrollments.enroll(identity, course_id, enrollment_data.student_id)
            return self._enrollment_to_response(enrollment)

        @self.app.get("/courses/{course_id}/enrollments", response_model=List[EnrollmentResponse])
        def list_course_enrollments(course_id: str,
                                    identity: IdentityContext = Depends(current_identity)):
            enrollments = self._enrollments.list_by_course(identity, course_id)
            return [self._enrollment_to_response(e) for e in enrollments]

        @self.app.get("/students/{student_id}/enrollments",
                      response_model=List[EnrollmentResponse])
        def list_student_enrollments(student_id: str,
                                     identity: IdentityContext = Depends(current_identity)):
            enrollments = self._enrollments.list_by_student(identity, student_id)
            return [self._enrollment_to_response(e) for e in enrollments]

        # Audit endpoints
        @self.app.get("/audit-logs", response_model=List[AuditLogResponse])
        def list_audit_logs(entity_id: Optional[str] = None,
                            limit: int = Query(50, ge=1, le=500),
                            identity: IdentityContext = Depends(current_identity)):
            """Recent activity feed for administrators."""
            if not identity.is_admin:
                raise ForbiddenError("Only administrators can read the audit log")
            entries = self._audit.list_entries(entity_id=entity_id, limit=limit)
            return [self._audit_to_response(entry) for entry in entries]

    def _profile_to_response(self, profile: Profile) -> ProfileResponse:
        """Convert Profile entity to response model."""
        return ProfileResponse(
            id=profile.id,
            email=profile.email,
            role=profile.role.value,
            phone=profile.phone,
            teacher_id=profile.teacher_id,
            voucher_number=profile.voucher_number,
            username=profile.username,
            created_at=profile.created_at,
        )

    def _course_to_response(self, course: Course) -> CourseResponse:
        """Convert Course entity to response model."""
        return CourseResponse(
            id=course.id,
            name=course.name,
            code=course.code,
            access_code=course.access_code,
            teacher_id=course.teacher_id,
            state=course.state.value,
            created_at=course.created_at,
            updated_at=course.updated_at,
        )

    def _enrollment_to_response(self, enrollment: Enrollment) -> EnrollmentResponse:
        """Convert Enrollment entity to response model."""
        return EnrollmentResponse(
            id=enrollment.id,
            course_id=enrollment.course_id,
            student_id=enrollment.student_id,
            grade=enrollment.grade,
            created_at=enrollment.created_at,
        )

    def _audit_to_response(self, entry: AuditLogEntry) -> AuditLogResponse:
        """Convert AuditLogEntry entity to response model."""
        return AuditLogResponse(
            id=entry.id,
            actor_id=entry.actor_id,
            action=entry.action.value,
            entity=entry.entity_kind,
            entity_id=entry.target_id,
            details=entry.details,
            created_at=entry.created_at,
        )
