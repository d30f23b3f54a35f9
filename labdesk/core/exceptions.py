"""
Custom exceptions for LabDesk
"""

from typing import Dict, List, Optional


class LabDeskException(Exception):
    """Base exception for all LabDesk errors"""

    def __init__(self, message: str, error_code: str = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class ValidationException(LabDeskException):
    """Form validation failed before any request was issued"""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None, error_code: str = None):
        self.errors = errors or {}
        super().__init__(message, error_code)


class ApiException(LabDeskException):
    """Backend answered with a non-2xx status or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: str = None):
        self.status_code = status_code
        super().__init__(message, error_code)


class AuthenticationException(LabDeskException):
    """No authenticated session"""
    pass


class WorkflowException(LabDeskException):
    """Order status transition not allowed from the current state"""
    pass


class NotFoundException(LabDeskException):
    """Requested record is not in the loaded data"""
    pass


class ResultSubmissionException(LabDeskException):
    """Result batch stopped part way through"""

    def __init__(self, message: str, submitted: List[str], failed_protocol_id: str):
        self.submitted = submitted
        self.failed_protocol_id = failed_protocol_id
        super().__init__(message, "RESULT_BATCH_INCOMPLETE")


class ReportException(LabDeskException):
    """Report could not be built or exported"""
    pass
