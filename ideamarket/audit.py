# ideamarket/audit.py

import logging

from flask import has_request_context, session
from sqlalchemy.exc import SQLAlchemyError

from . import db
from .models import ErrorLog, SystemLog

logger = logging.getLogger(__name__)

SYSTEM_LOG_TYPES = ('admin_action', 'scheduled_task', 'migration', 'config_change', 'maintenance', 'other')
ERROR_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')


def client_ip(request):
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('X-Real-IP') or request.remote_addr


def current_user_id():
    if not has_request_context():
        return None
    return session.get('user_id')


def record_system_log(dbsession, action, user_id=None, log_type='admin_action',
                      target_table=None, target_id=None, description=None,
                      before_data=None, after_data=None, ip_address=None):
    """Stage an audit row in ``dbsession``.

    The row is committed together with the change it describes, so an
    audit entry never exists for a change that was rolled back.
    """
    entry = SystemLog(
        user_id=user_id,
        log_type=log_type,
        action=action,
        target_table=target_table,
        target_id=target_id,
        description=description,
        before_data=before_data,
        after_data=after_data,
        ip_address=ip_address,
    )
    dbsession.add(entry)
    return entry


def record_error_log(error_message, user_id=None, error_level='error', error_code=None,
                     error_stack=None, request_path=None, request_method=None,
                     ip_address=None, user_agent=None, additional_info=None):
    """Persist an error row in its own commit. Failures are only logged."""
    entry = ErrorLog(
        user_id=user_id,
        error_level=error_level,
        error_code=error_code,
        error_message=error_message,
        error_stack=error_stack,
        request_path=request_path,
        request_method=request_method,
        ip_address=ip_address,
        user_agent=user_agent,
        additional_info=additional_info,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not record error log: %s", error_message)
        return None
    return entry
