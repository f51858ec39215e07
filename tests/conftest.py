import os

# config.py refuses to load without a secret key
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

import pytest

from ideamarket import create_app, db
from ideamarket.models import Idea, IdeaStatus, Profile, Sold


@pytest.fixture
def app():
    app = create_app('test')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_profile(app):
    counter = {'n': 0}

    def _make(role='user', email=None, display_name=None, password='correct horse battery'):
        counter['n'] += 1
        with app.app_context():
            profile = Profile(
                email=email or f"user{counter['n']}@example.com",
                display_name=display_name or f"User {counter['n']}",
                role=role,
            )
            profile.set_password(password)
            db.session.add(profile)
            db.session.commit()
            return profile.id
    return _make


@pytest.fixture
def make_idea(app):
    counter = {'n': 0}

    def _make(author_id, status=IdeaStatus.CLOSED, is_exclusive=False, price=100000,
              title=None, deadline=None, purchase_count=0):
        counter['n'] += 1
        with app.app_context():
            idea = Idea(
                mmb_no=counter['n'],
                author_id=author_id,
                title=title or f"Idea {counter['n']}",
                summary='A concept worth building.',
                detail='The full plan.',
                price=price,
                is_exclusive=is_exclusive,
                status=status,
                deadline=deadline,
                purchase_count=purchase_count,
            )
            db.session.add(idea)
            db.session.commit()
            return idea.id
    return _make


@pytest.fixture
def make_sold(app):
    def _make(idea_id, buyer_id, phone_number='0312345678', company='Acme', manager='Tanaka',
              is_paid=False, created_at=None):
        with app.app_context():
            sold = Sold(idea_id=idea_id, user_id=buyer_id, phone_number=phone_number,
                        company=company, manager=manager, is_paid=is_paid, amount=100000)
            if created_at is not None:
                sold.created_at = created_at
            db.session.add(sold)
            db.session.commit()
            return sold.id
    return _make


@pytest.fixture
def client_for(app):
    """A test client whose session is logged in as the given profile."""
    def _client(user_id):
        c = app.test_client()
        with c.session_transaction() as sess:
            sess['user_id'] = user_id
        return c
    return _client


@pytest.fixture
def author_id(make_profile):
    return make_profile(display_name='Author')


@pytest.fixture
def buyer_id(make_profile):
    return make_profile(display_name='Buyer')


@pytest.fixture
def admin_id(make_profile):
    return make_profile(role='admin', display_name='Admin')


@pytest.fixture
def admin_client(client_for, admin_id):
    return client_for(admin_id)


@pytest.fixture
def buyer_client(client_for, buyer_id):
    return client_for(buyer_id)


PURCHASE_FORM = {
    'phoneNumber': '0312345678',
    'company': 'Acme Inc.',
    'manager': 'Tanaka',
}
