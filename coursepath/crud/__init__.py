# This file makes the 'crud' directory a Python package.

from .user_crud import (
    get_user_by_id,
    get_user_by_email,
    get_user_by_firebase_uid,
    create_user,
    get_users,
    count_users,
    update_user_by_admin,
    ProtectedAccountError,
    get_or_create_service_account
)

from .course_crud import (
    NotFoundError, ConflictError,
    create_course, get_course, get_courses, update_course, archive_course, restore_course, purge_course,
    create_course_module, get_module, get_course_module, get_modules_for_course, get_next_module,
    update_course_module, delete_course_module,
    get_module_transcription, upsert_module_transcription, save_transcription_embeddings,
    get_course_materials, get_course_material, create_course_material, update_course_material, delete_course_material
)

from .progress_crud import (
    CourseProgressSummary,
    get_module_completion, set_module_completion, get_completed_modules, compute_course_progress,
    get_enrollment, enroll_user, start_module, record_module_progress, reset_module_completion,
    refresh_course_enrollments, get_user_enrollments
)

from .quiz_crud import (
    GradeOutcome,
    get_quiz_questions, create_quiz_questions, replace_quiz_questions,
    grade_submission, submit_quiz, get_quiz_results, has_attempted
)

from .certificate_crud import (
    CertificatePermissionError, EnrollmentRequiredError, CertificateEligibilityError,
    issue_certificate, generate_credential_id, get_certificate_by_id, get_certificate_by_credential_id,
    get_certificates_for_user, get_certificates_for_course, delete_certificate
)

from .job_crud import (
    create_job, get_job, get_jobs, mark_running, mark_finished, reset_for_retry
)
