# ideamarket/errors.py

import logging
import traceback

import pydantic
from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from . import db
from .audit import client_ip, current_user_id, record_error_log

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors rendered as a JSON error envelope."""

    status_code = 500
    code = 'SYS_001'
    message = 'Unexpected server error'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_dict(self):
        return {'code': self.code, 'message': self.message, 'details': self.details}


class AuthenticationError(AppError):
    status_code = 401
    code = 'AUTH_001'
    message = 'Authentication required'

class PermissionDenied(AppError):
    status_code = 403
    code = 'AUTH_002'
    message = 'Administrator privileges required'

class ValidationError(AppError):
    status_code = 400
    code = 'API_001'
    message = 'Invalid request parameters'

class NotFound(AppError):
    status_code = 404
    code = 'DB_001'
    message = 'Record not found'

class DatabaseError(AppError):
    status_code = 500
    code = 'DB_002'
    message = 'Database operation failed'

class Conflict(AppError):
    status_code = 409
    code = 'DB_003'
    message = 'Record conflicts with existing data'

class PaymentError(AppError):
    status_code = 502
    code = 'PAY_001'
    message = 'Payment provider error'


def error_response(err):
    return jsonify(error=err.to_dict()), err.status_code


def pydantic_details(exc):
    return [
        {'loc': [str(part) for part in e['loc']], 'msg': e['msg'], 'type': e['type']}
        for e in exc.errors()
    ]


def register_error_handlers(app):

    @app.errorhandler(AppError)
    def handle_app_error(err):
        if err.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, err.message)
        return error_response(err)

    @app.errorhandler(pydantic.ValidationError)
    def handle_validation_error(exc):
        return error_response(ValidationError(details=pydantic_details(exc)))

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        _record_unhandled(exc, 'DB_002')
        return error_response(DatabaseError(details=exc.__class__.__name__))

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return jsonify(error={
                'code': f'HTTP_{exc.code}',
                'message': exc.description,
                'details': None,
            }), exc.code
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        _record_unhandled(exc, 'SYS_001')
        return error_response(AppError(details=str(exc)))


def _record_unhandled(exc, code):
    record_error_log(
        user_id=current_user_id(),
        error_level='critical' if code == 'SYS_001' else 'error',
        error_code=code,
        error_message=str(exc) or exc.__class__.__name__,
        error_stack=''.join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        request_path=request.path,
        request_method=request.method,
        ip_address=client_ip(request),
        user_agent=request.headers.get('User-Agent'),
    )
