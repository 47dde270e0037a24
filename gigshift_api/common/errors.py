# gigshift_api/common/errors.py
from flask import Blueprint, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from gigshift_api.common.http import fail
from gigshift_api.extensions import db

bp_errors = Blueprint("errors", __name__)


class APIError(Exception):
    """Base class for errors that map onto an API response."""
    code = "API_ERROR"
    status_code = 400

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    """Malformed input: bad time label, day out of range, missing reason."""
    code = "VALIDATION_ERROR"
    status_code = 422


class ConflictError(APIError):
    """Duplicate or overlapping rows, or a lost race on a unique constraint."""
    code = "CONFLICT"
    status_code = 409


class NotFoundError(APIError):
    """Row absent, or not in a state that permits the requested transition."""
    code = "NOT_FOUND"
    status_code = 404


class BusinessRuleError(APIError):
    code = "BUSINESS_RULE"
    status_code = 400


class AuthorizationError(APIError):
    code = "FORBIDDEN"
    status_code = 403


@bp_errors.app_errorhandler(APIError)
def _api_error(e: APIError):
    return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)


@bp_errors.app_errorhandler(HTTPException)
def _http(e: HTTPException):
    return fail(message=e.description or e.name, status=e.code or 500)


@bp_errors.app_errorhandler(IntegrityError)
def _integrity(e: IntegrityError):
    # 409 for unique/FK violations the services did not translate
    db.session.rollback()
    return fail(message="Conflict / integrity error", status=409, code="CONSTRAINT_ERROR")


@bp_errors.app_errorhandler(Exception)
def _unhandled(e: Exception):
    db.session.rollback()
    current_app.logger.exception(e)
    return fail(message="Internal Server Error", status=500)
