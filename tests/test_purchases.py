import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from ideamarket import db
from ideamarket.engine.purchases import PurchaseWorkflow
from ideamarket.errors import Conflict, NotFound
from ideamarket.models import Idea, IdeaStatus, Profile, Sold, SystemLog
from ideamarket.schemas import PurchaseRequest

from .conftest import PURCHASE_FORM


def purchase(client, idea_id, **overrides):
    return client.post(f'/api/ideas/{idea_id}/purchase', json={**PURCHASE_FORM, **overrides})


def test_non_exclusive_purchase_increments_counter(app, buyer_client, author_id, buyer_id, make_idea):
    idea_id = make_idea(author_id, is_exclusive=False)

    rv = purchase(buyer_client, idea_id)

    assert rv.status_code == 201
    body = rv.get_json()
    assert body['success'] is True
    assert body['data']['idea_id'] == idea_id
    assert body['data']['user_id'] == buyer_id
    assert body['data']['is_paid'] is False
    with app.app_context():
        idea = db.session.get(Idea, idea_id)
        assert idea.status == IdeaStatus.CLOSED
        assert idea.purchase_count == 1


def test_exclusive_purchase_sells_out(app, buyer_client, author_id, make_idea):
    idea_id = make_idea(author_id, is_exclusive=True)

    rv = purchase(buyer_client, idea_id)

    assert rv.status_code == 201
    with app.app_context():
        idea = db.session.get(Idea, idea_id)
        assert idea.status == IdeaStatus.SOLDOUT
        assert idea.purchase_count == 0


def test_second_exclusive_purchase_conflicts(app, buyer_client, client_for, make_profile, author_id, make_idea):
    idea_id = make_idea(author_id, is_exclusive=True)
    assert purchase(buyer_client, idea_id).status_code == 201

    other = client_for(make_profile())
    rv = purchase(other, idea_id)

    assert rv.status_code == 409
    assert rv.get_json()['error']['code'] == 'DB_003'
    with app.app_context():
        assert Sold.query.filter_by(idea_id=idea_id).count() == 1


def test_same_buyer_cannot_buy_twice(app, buyer_client, author_id, make_idea):
    idea_id = make_idea(author_id, is_exclusive=False)
    assert purchase(buyer_client, idea_id).status_code == 201

    rv = purchase(buyer_client, idea_id)

    assert rv.status_code == 409
    assert rv.get_json()['error']['message'] == 'You have already purchased this idea'
    with app.app_context():
        # The rolled back attempt must not bump the counter
        assert db.session.get(Idea, idea_id).purchase_count == 1


@pytest.mark.parametrize('status', [IdeaStatus.PUBLISHED, IdeaStatus.OVERDUE])
def test_only_closed_ideas_are_purchasable(buyer_client, author_id, make_idea, status):
    idea_id = make_idea(author_id, status=status)

    rv = purchase(buyer_client, idea_id)

    assert rv.status_code == 409


def test_purchase_unknown_idea(buyer_client):
    rv = purchase(buyer_client, 'does-not-exist')
    assert rv.status_code == 404
    assert rv.get_json()['error']['code'] == 'DB_001'


def test_purchase_requires_login(client, author_id, make_idea):
    idea_id = make_idea(author_id)
    rv = purchase(client, idea_id)
    assert rv.status_code == 401
    assert rv.get_json()['error']['code'] == 'AUTH_001'


@pytest.mark.parametrize('overrides', [
    {'phoneNumber': '03-1234-5678'},
    {'phoneNumber': ''},
    {'company': '   '},
    {'manager': None},
])
def test_purchase_form_is_validated(buyer_client, author_id, make_idea, overrides):
    idea_id = make_idea(author_id)
    rv = purchase(buyer_client, idea_id, **overrides)
    assert rv.status_code == 400
    assert rv.get_json()['error']['code'] == 'API_001'


def test_formal_documentation_fee_is_added(app, buyer_client, author_id, make_idea):
    idea_id = make_idea(author_id, price=50000)

    rv = purchase(buyer_client, idea_id, formalDocumentation=True)

    assert rv.get_json()['data']['amount'] == 50000 + app.config['FORMAL_DOCUMENTATION_FEE']


def test_purchase_is_audited(app, buyer_client, buyer_id, author_id, make_idea):
    idea_id = make_idea(author_id)
    sold_id = purchase(buyer_client, idea_id).get_json()['data']['id']

    with app.app_context():
        entry = SystemLog.query.filter_by(action='PURCHASE_IDEA').one()
        assert entry.user_id == buyer_id
        assert entry.target_id == sold_id


def test_workflow_raises_domain_errors(app, author_id, buyer_id, make_idea):
    idea_id = make_idea(author_id, is_exclusive=True, status=IdeaStatus.SOLDOUT)
    contact = PurchaseRequest.model_validate(PURCHASE_FORM)

    with app.app_context():
        workflow = PurchaseWorkflow(db.session)
        with pytest.raises(Conflict):
            workflow.purchase(idea_id, buyer_id, contact)
        with pytest.raises(NotFound):
            workflow.cancel('00000000-0000-0000-0000-000000000000')
        with pytest.raises(NotFound):
            workflow.set_payment_status('00000000-0000-0000-0000-000000000000', True)


def test_exclusive_idea_sells_once_across_sessions(app, tmp_path):
    # Two buyers load the idea while it is still on sale; only one may win
    engine = create_engine(f"sqlite:///{tmp_path / 'market.db'}")
    db.metadata.create_all(engine)
    contact = PurchaseRequest.model_validate(PURCHASE_FORM)
    try:
        with Session(engine) as setup:
            setup.add_all([
                Profile(id='author', email='author@example.com', display_name='Author'),
                Profile(id='first', email='first@example.com', display_name='First'),
                Profile(id='second', email='second@example.com', display_name='Second'),
                Idea(id='idea', mmb_no=1, author_id='author', title='Only one', summary='s',
                     detail='d', price=100000, is_exclusive=True, status=IdeaStatus.CLOSED),
            ])
            setup.commit()

        with Session(engine) as first, Session(engine) as second:
            assert first.get(Idea, 'idea').is_purchasable

            PurchaseWorkflow(second).purchase('idea', 'second', contact)
            with pytest.raises(Conflict, match='already sold out'):
                PurchaseWorkflow(first).purchase('idea', 'first', contact)

        with Session(engine) as check:
            assert check.scalar(select(func.count()).select_from(Sold)) == 1
            assert check.scalar(select(Sold.user_id)) == 'second'
            assert check.get(Idea, 'idea').status == IdeaStatus.SOLDOUT
    finally:
        engine.dispose()
