ROLE_STUDENT = "STUDENT"
ROLE_FACULTY = "FACULTY"
ROLE_HOD = "HOD"
ROLE_PRINCIPAL = "PRINCIPAL"
ROLE_REGISTRAR = "REGISTRAR"
ROLE_ADMIN = "ADMIN"

ROLES = (
    ROLE_STUDENT,
    ROLE_FACULTY,
    ROLE_HOD,
    ROLE_PRINCIPAL,
    ROLE_REGISTRAR,
    ROLE_ADMIN,
)

PERMISSION_MATRIX = {
    ROLE_STUDENT: [
        "TRANSCRIPT_SUBMIT",
        "TRANSCRIPT_VIEW_OWN",
    ],
    ROLE_FACULTY: [
        "LEAVE_SUBMIT",
    ],
    ROLE_HOD: [
        "LEAVE_SUBMIT",
        "LEAVE_VIEW_DEPARTMENT",
        "LEAVE_HOD_DECIDE",
        "TRANSCRIPT_VIEW_DEPARTMENT",
        "TRANSCRIPT_APPROVE",
        "TRANSCRIPT_ISSUE_DOCUMENT",
    ],
    ROLE_PRINCIPAL: [
        "LEAVE_VIEW_ALL",
        "LEAVE_PRINCIPAL_DECIDE",
        "TRANSCRIPT_VIEW_ALL",
    ],
    ROLE_REGISTRAR: [
        "LEAVE_VIEW_ALL",
        "TRANSCRIPT_VIEW_ALL",
    ],
    ROLE_ADMIN: [
        "LEAVE_VIEW_ALL",
        "TRANSCRIPT_VIEW_ALL",
    ],
}
