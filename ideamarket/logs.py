# ideamarket/logs.py

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from . import db
from .audit import client_ip, current_user_id
from .models import AccessLog, BlogViewHistory, ErrorLog, SystemLog
from .schemas import AccessLogIn, BlogViewIn, ErrorLogIn, SystemLogIn
from .utils import json_body

logs = Blueprint('logs', __name__)
logger = logging.getLogger(__name__)


def _ingest(schema, build):
    """Validate the body, store one log row and report the outcome.

    Storage failures are reported in the body with a 200 so clients never
    retry or surface logging problems to end users.
    """
    payload = schema.model_validate(json_body())
    try:
        db.session.add(build(payload))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Failed to store %s", schema.__name__)
        return jsonify(success=False, error=e.__class__.__name__)
    return jsonify(success=True)


def _request_meta():
    return {
        'user_id': current_user_id(),
        'ip_address': client_ip(request),
        'user_agent': request.headers.get('User-Agent'),
    }


@logs.route('/access', methods=['POST'])
def access():
    return _ingest(AccessLogIn, lambda p: AccessLog(**p.model_dump(), **_request_meta()))


@logs.route('/error', methods=['POST'])
def error():
    return _ingest(ErrorLogIn, lambda p: ErrorLog(**p.model_dump(), **_request_meta()))


@logs.route('/system', methods=['POST'])
def system():
    # System log rows carry no User-Agent column
    def build(p):
        meta = _request_meta()
        meta.pop('user_agent')
        return SystemLog(**p.model_dump(), **meta)
    return _ingest(SystemLogIn, build)


@logs.route('/blog-view', methods=['POST'])
def blog_view():
    return _ingest(BlogViewIn, lambda p: BlogViewHistory(**p.model_dump(), **_request_meta()))
