# ideamarket/auth.py

import functools
import logging

from flask import Blueprint, g, jsonify, request, session

from . import db
from .audit import client_ip
from .errors import AuthenticationError, Conflict, PermissionDenied
from .models import LoginHistory, Profile
from .schemas import LoginRequest, SignupRequest
from .utils import json_body

auth = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def load_user():
    """Return the profile stored in the session, or None."""
    if 'user' not in g:
        user_id = session.get('user_id')
        g.user = db.session.get(Profile, user_id) if user_id else None
    return g.user


def login_required(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        if load_user() is None:
            raise AuthenticationError()
        return view(*args, **kwargs)
    return wrapped


def admin_required(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        user = load_user()
        if user is None:
            raise AuthenticationError()
        if not user.is_admin:
            logger.warning("Profile %s denied admin access to %s", user.id, request.path)
            raise PermissionDenied()
        return view(*args, **kwargs)
    return wrapped


@auth.route('/signup', methods=['POST'])
def signup():
    payload = SignupRequest.model_validate(json_body())
    email = payload.email.lower()
    if Profile.query.filter_by(email=email).first():
        raise Conflict("Email address is already registered")

    profile = Profile(email=email, display_name=payload.display_name)
    profile.set_password(payload.password)
    db.session.add(profile)
    db.session.commit()
    logger.info("Profile %s signed up", profile.id)
    return jsonify(success=True, data=profile.to_dict()), 201


@auth.route('/login', methods=['POST'])
def login():
    payload = LoginRequest.model_validate(json_body())
    profile = Profile.query.filter_by(email=payload.email.lower()).first()
    ok = profile is not None and profile.check_password(payload.password)

    db.session.add(LoginHistory(
        user_id=profile.id if profile else None,
        login_status='success' if ok else 'failure',
        failure_reason=None if ok else ('invalid password' if profile else 'unknown email'),
        ip_address=client_ip(request),
        user_agent=request.headers.get('User-Agent'),
    ))
    db.session.commit()

    if not ok:
        raise AuthenticationError("Invalid email or password")

    session.clear()
    session['user_id'] = profile.id
    return jsonify(success=True, data=profile.to_dict())


@auth.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify(success=True)


@auth.route('/me')
@login_required
def me():
    return jsonify(success=True, data=load_user().to_dict())
