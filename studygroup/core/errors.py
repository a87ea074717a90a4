"""
Base exceptions raised by the service layer. The API translates each of these
to a response envelope with the matching status code.
"""


class StudyGroupError(Exception):
    status_code: int = 500


class InvalidRequestError(StudyGroupError):
    status_code = 400


class AuthenticationFailed(StudyGroupError):
    status_code = 401


class ForbiddenError(StudyGroupError):
    status_code = 403


class NotFoundError(StudyGroupError):
    status_code = 404


class ConflictError(StudyGroupError):
    status_code = 409


class RuleRejection(StudyGroupError):
    """
    A request that was understood but refused by a business rule (joining a
    full group, asking twice). Reported with `success=False` and a 200 status.
    """

    status_code = 200

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.data = data
