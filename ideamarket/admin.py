# ideamarket/admin.py

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from sqlalchemy import func, select

from . import db
from .audit import client_ip, record_system_log
from .auth import admin_required, load_user
from .engine.exports import export_logs
from .engine.ideas import get_idea, update_idea
from .engine.purchases import PurchaseWorkflow
from .errors import NotFound, ValidationError
from .models import Idea, Profile, UserDetails, isoformat, utcnow
from .schemas import (IdeaUpdate, ListQuery, LogDownloadRequest, PaymentStatusUpdate,
                      PurchaseCancel, UserDetailsUpdate)
from .utils import contains_pattern, json_body, query_args

admin = Blueprint('admin', __name__)


# -----------------------------
# Purchases
# -----------------------------

@admin.route('/sold')
@admin_required
def list_sold():
    params = ListQuery.model_validate(query_args())
    records, count = PurchaseWorkflow.for_request().search(params.q, params.limit, params.offset)
    return jsonify(success=True, data=[r.to_dict(embed=True) for r in records], count=count)


@admin.route('/sold', methods=['PATCH'])
@admin_required
def update_sold():
    payload = PaymentStatusUpdate.model_validate(json_body())
    sold = PurchaseWorkflow.for_request().set_payment_status(
        payload.id, payload.is_paid,
        actor_id=load_user().id, ip_address=client_ip(request),
    )
    return jsonify(success=True, data=sold.to_dict())


@admin.route('/sold', methods=['DELETE'])
@admin_required
def cancel_sold():
    payload = PurchaseCancel.model_validate(json_body())
    PurchaseWorkflow.for_request().cancel(payload.id, actor_id=load_user().id, ip_address=client_ip(request))
    return jsonify(success=True)


# -----------------------------
# User details
# -----------------------------

def _flatten(profile, details):
    data = {
        'user_id': profile.id,
        'display_name': profile.display_name,
        'role': profile.role,
        'profile_created_at': isoformat(profile.created_at),
        'id': details.id if details else None,
    }
    for field in UserDetails.UPDATABLE:
        data[field] = getattr(details, field) if details else None
    data['created_at'] = isoformat(details.created_at if details else profile.created_at)
    data['updated_at'] = isoformat(details.updated_at if details else profile.updated_at)
    return data


@admin.route('/user-details')
@admin_required
def list_user_details():
    params = ListQuery.model_validate(query_args())
    stmt = select(Profile, UserDetails).outerjoin(UserDetails, UserDetails.user_id == Profile.id)
    if params.q:
        stmt = stmt.where(Profile.display_name.ilike(contains_pattern(params.q), escape="\\"))

    count = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    rows = db.session.execute(
        stmt.order_by(Profile.created_at.desc()).limit(params.limit).offset(params.offset)
    ).all()
    return jsonify(success=True, data=[_flatten(p, d) for p, d in rows], count=count)


@admin.route('/user-details', methods=['PATCH'])
@admin_required
def upsert_user_details():
    payload = UserDetailsUpdate.model_validate(json_body())
    changes = payload.changes()
    if not changes:
        raise ValidationError("No fields to update")

    user_id = str(payload.user_id)
    if db.session.get(Profile, user_id) is None:
        raise NotFound(f"Profile {user_id} not found")

    details = db.session.scalar(select(UserDetails).where(UserDetails.user_id == user_id))
    created = details is None
    if created:
        details = UserDetails(user_id=user_id)
        db.session.add(details)
    for field, value in changes.items():
        setattr(details, field, value)
    details.updated_at = utcnow()

    record_system_log(
        db.session,
        action='CREATE_USER_DETAILS' if created else 'UPDATE_USER_DETAILS',
        user_id=load_user().id,
        target_table='user_details',
        target_id=user_id,
        description=f"User details {'created' if created else 'updated'}",
        after_data=changes,
        ip_address=client_ip(request),
    )
    db.session.commit()
    return jsonify(success=True, data=details.to_dict())


# -----------------------------
# Ideas
# -----------------------------

@admin.route('/ideas')
@admin_required
def list_ideas():
    params = ListQuery.model_validate(query_args())
    stmt = select(Idea)
    if params.q:
        stmt = stmt.where(Idea.title.ilike(contains_pattern(params.q), escape="\\"))
    count = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    ideas = db.session.scalars(
        stmt.order_by(Idea.mmb_no.desc()).limit(params.limit).offset(params.offset)
    ).all()
    return jsonify(success=True, data=[i.to_dict(with_detail=True) for i in ideas], count=count)


@admin.route('/ideas/<idea_id>', methods=['PATCH'])
@admin_required
def edit_idea(idea_id):
    payload = IdeaUpdate.model_validate(json_body())
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    required = [f for f in ('title', 'summary', 'price', 'is_exclusive', 'status')
                if f in changes and changes[f] is None]
    if required:
        raise ValidationError("Fields cannot be null", details=required)
    idea = get_idea(db.session, idea_id)
    update_idea(db.session, idea, changes, actor_id=load_user().id, ip_address=client_ip(request))
    return jsonify(success=True, data=idea.to_dict(with_detail=True))


# -----------------------------
# Log export
# -----------------------------

@admin.route('/logs/download', methods=['POST'])
@admin_required
def download_logs():
    payload = LogDownloadRequest.model_validate(json_body())
    filename, chunks = export_logs(
        db.session, payload.log_type, payload.start_date, payload.end_date,
        limit=current_app.config.get('EXPORT_ROW_LIMIT', 10000),
    )
    return Response(
        stream_with_context(chunks),
        content_type='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )
