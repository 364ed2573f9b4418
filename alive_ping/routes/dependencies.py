"""
Request-scoped access to the runtime built in the application lifespan,
plus the mapping from service errors to HTTP errors.
"""

from fastapi import HTTPException, Request, status

from alive_ping.runtime import Runtime
from alive_ping.services.checkin_service import CheckInService
from alive_ping.services.contact_service import ContactService
from alive_ping.services.errors import (
    AlreadyCheckedInToday,
    CheckInServiceError,
    ContactNotFound,
    DuplicateContact,
    ServicePaused,
    UserNotFound,
)
from alive_ping.services.user_service import UserService

_STATUS_BY_ERROR = {
    AlreadyCheckedInToday: status.HTTP_400_BAD_REQUEST,
    ServicePaused: status.HTTP_400_BAD_REQUEST,
    DuplicateContact: status.HTTP_400_BAD_REQUEST,
    UserNotFound: status.HTTP_404_NOT_FOUND,
    ContactNotFound: status.HTTP_404_NOT_FOUND,
}


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized"
        )
    return runtime


def get_checkin_service(request: Request) -> CheckInService:
    return get_runtime(request).checkin_service


def get_contact_service(request: Request) -> ContactService:
    return get_runtime(request).contact_service


def get_user_service(request: Request) -> UserService:
    return get_runtime(request).user_service


def to_http_error(error: CheckInServiceError) -> HTTPException:
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=str(error))
