from fastapi import HTTPException, status

from app.constants.error_codes import ErrorCode


class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        details: dict | None = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details

    @property
    def message(self) -> str:
        return self.detail


# =====================================================
# DOMAIN ERRORS
# =====================================================
class NotFoundError(AppException):
    def __init__(
        self,
        message: str = "Resource not found",
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
        details: dict | None = None,
    ):
        super().__init__(status.HTTP_404_NOT_FOUND, message, error_code, details)


class InvalidTransition(AppException):
    """Status no-op, illegal regression or concurrent modification."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status.HTTP_409_CONFLICT, message, ErrorCode.INVALID_TRANSITION, details
        )


class AlreadyEscalated(AppException):
    def __init__(
        self,
        message: str = "Complaint is already escalated",
        details: dict | None = None,
    ):
        super().__init__(
            status.HTTP_409_CONFLICT, message, ErrorCode.ALREADY_ESCALATED, details
        )


class TerminalState(AppException):
    """Mutation attempted on a resolved or closed complaint."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status.HTTP_409_CONFLICT, message, ErrorCode.TERMINAL_STATE, details
        )


class NoEligibleStaff(AppException):
    def __init__(
        self,
        message: str = "No available staff members found for this department",
        details: dict | None = None,
    ):
        super().__init__(
            status.HTTP_404_NOT_FOUND, message, ErrorCode.NO_ELIGIBLE_STAFF, details
        )


class InvalidAssignee(AppException):
    def __init__(
        self,
        message: str = "Assignee must be an active staff member or administrator",
        details: dict | None = None,
    ):
        super().__init__(
            status.HTTP_400_BAD_REQUEST, message, ErrorCode.INVALID_ASSIGNEE, details
        )


class InvalidInterval(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            422,
            message,
            ErrorCode.INVALID_INTERVAL,
            details,
        )


class SweepInProgress(AppException):
    def __init__(
        self,
        message: str = (
            "Escalation sweep is currently running. Please wait for it to complete."
        ),
        details: dict | None = None,
    ):
        super().__init__(
            status.HTTP_409_CONFLICT, message, ErrorCode.SWEEP_IN_PROGRESS, details
        )
