# ideamarket/main.py

from flask import Blueprint, abort, jsonify, request
from sqlalchemy import func, select

from . import db
from .audit import client_ip
from .auth import load_user, login_required
from .engine.ideas import add_comment, create_idea, get_idea
from .engine.purchases import PurchaseWorkflow
from .models import Idea
from .schemas import CommentCreate, IdeaCreate, IdeaListQuery, PurchaseRequest
from .utils import contains_pattern, json_body, query_args

main = Blueprint('main', __name__)


@main.route('/health')
def health():
    return jsonify(status='ok')


@main.route('/ideas')
def list_ideas():
    params = IdeaListQuery.model_validate(query_args())
    stmt = select(Idea)
    if params.status:
        stmt = stmt.where(Idea.status == params.status)
    if params.q:
        stmt = stmt.where(Idea.title.ilike(contains_pattern(params.q), escape="\\"))

    count = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    ideas = db.session.scalars(
        stmt.order_by(Idea.created_at.desc()).limit(params.limit).offset(params.offset)
    ).all()
    return jsonify(success=True, data=[idea.to_dict() for idea in ideas], count=count)


@main.route('/ideas/<idea_id>')
def show_idea(idea_id):
    idea = get_idea(db.session, idea_id)
    user = load_user()
    data = idea.to_dict()
    # The full detail is only for the author, admins and buyers
    if user is not None and (user.is_admin or user.id == idea.author_id
                             or any(p.user_id == user.id for p in idea.purchases)):
        data['detail'] = idea.detail
    data['comments'] = [comment.to_dict() for comment in idea.comments]
    return jsonify(success=True, data=data)


@main.route('/ideas', methods=['POST'])
@login_required
def post_idea():
    payload = IdeaCreate.model_validate(json_body())
    idea = create_idea(db.session, load_user().id, payload)
    return jsonify(success=True, data=idea.to_dict(with_detail=True)), 201


@main.route('/ideas/<idea_id>/comments', methods=['POST'])
@login_required
def post_comment(idea_id):
    payload = CommentCreate.model_validate(json_body())
    idea = get_idea(db.session, idea_id)
    comment = add_comment(db.session, idea, load_user().id, payload.text)
    return jsonify(success=True, data=comment.to_dict()), 201


@main.route('/ideas/<idea_id>/purchase', methods=['POST'])
@login_required
def purchase_idea(idea_id):
    contact = PurchaseRequest.model_validate(json_body())
    sold = PurchaseWorkflow.for_request().purchase(idea_id, load_user().id, contact,
                                        ip_address=client_ip(request))
    return jsonify(success=True, data=sold.to_dict()), 201


@main.route('/checkout/<outcome>')
def checkout_result(outcome):
    # Landing page Stripe redirects to when no external URL is configured
    if outcome not in ('success', 'cancel'):
        abort(404)
    return jsonify(success=outcome == 'success', checkout=outcome)
