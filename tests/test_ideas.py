from datetime import datetime, timedelta, timezone

import pytest

from ideamarket import db
from ideamarket.engine.ideas import mark_overdue
from ideamarket.models import Idea, IdeaStatus, SystemLog

LONG_COMMENT = 'This would work well for small logistics companies in rural areas.'


def test_post_idea_assigns_next_number(app, client_for, author_id, make_idea):
    make_idea(author_id)
    author = client_for(author_id)

    rv = author.post('/api/ideas', json={
        'title': 'Shared cold storage',
        'summary': 'Rent refrigerated lockers by the hour.',
        'price': 30000,
        'is_exclusive': True,
    })

    assert rv.status_code == 201
    data = rv.get_json()['data']
    assert data['mmb_no'] == 2
    assert data['status'] == IdeaStatus.PUBLISHED
    assert data['author_id'] == author_id


def test_post_idea_requires_login(client):
    assert client.post('/api/ideas', json={'title': 't', 'summary': 's'}).status_code == 401


def test_list_filters_by_status(client, author_id, make_idea):
    make_idea(author_id, status=IdeaStatus.PUBLISHED)
    make_idea(author_id, status=IdeaStatus.CLOSED)

    body = client.get('/api/ideas?status=closed').get_json()

    assert body['count'] == 1
    assert body['data'][0]['status'] == IdeaStatus.CLOSED
    assert client.get('/api/ideas?status=archived').status_code == 400


def test_title_search_treats_wildcards_literally(client, author_id, make_idea):
    make_idea(author_id, title='50% off lunch')
    make_idea(author_id, title='Lunch club')

    body = client.get('/api/ideas', query_string={'q': '%'}).get_json()

    assert [i['title'] for i in body['data']] == ['50% off lunch']


def test_detail_is_hidden_from_strangers(client, client_for, author_id, buyer_id, make_idea, make_sold):
    idea_id = make_idea(author_id)

    assert 'detail' not in client.get(f'/api/ideas/{idea_id}').get_json()['data']
    assert client_for(author_id).get(f'/api/ideas/{idea_id}').get_json()['data']['detail'] == 'The full plan.'

    make_sold(idea_id, buyer_id)
    assert client_for(buyer_id).get(f'/api/ideas/{idea_id}').get_json()['data']['detail'] == 'The full plan.'


def test_unknown_idea(client):
    rv = client.get('/api/ideas/nope')
    assert rv.status_code == 404
    assert rv.get_json()['error']['code'] == 'DB_001'


def test_comments_on_published_ideas(client, buyer_client, author_id, make_idea):
    idea_id = make_idea(author_id, status=IdeaStatus.PUBLISHED)

    rv = buyer_client.post(f'/api/ideas/{idea_id}/comments', json={'text': LONG_COMMENT})

    assert rv.status_code == 201
    assert rv.get_json()['data']['display_name'] == 'Buyer'
    comments = client.get(f'/api/ideas/{idea_id}').get_json()['data']['comments']
    assert [c['text'] for c in comments] == [LONG_COMMENT]


def test_comment_rules(buyer_client, author_id, make_idea):
    published = make_idea(author_id, status=IdeaStatus.PUBLISHED)
    closed = make_idea(author_id, status=IdeaStatus.CLOSED)

    short = buyer_client.post(f'/api/ideas/{published}/comments', json={'text': '  too short  '})
    assert short.status_code == 400

    rv = buyer_client.post(f'/api/ideas/{closed}/comments', json={'text': LONG_COMMENT})
    assert rv.status_code == 409


def test_mark_overdue(app, author_id, make_idea):
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    late = make_idea(author_id, status=IdeaStatus.PUBLISHED, deadline=now - timedelta(days=1))
    on_time = make_idea(author_id, status=IdeaStatus.PUBLISHED, deadline=now + timedelta(days=1))
    closed = make_idea(author_id, status=IdeaStatus.CLOSED, deadline=now - timedelta(days=1))
    open_ended = make_idea(author_id, status=IdeaStatus.PUBLISHED)

    with app.app_context():
        assert mark_overdue(db.session, now=now) == 1
        statuses = {i.id: i.status for i in Idea.query.all()}
        assert SystemLog.query.filter_by(action='MARK_OVERDUE').count() == 1

    assert statuses == {
        late: IdeaStatus.OVERDUE,
        on_time: IdeaStatus.PUBLISHED,
        closed: IdeaStatus.CLOSED,
        open_ended: IdeaStatus.PUBLISHED,
    }


def test_mark_overdue_command(app, author_id, make_idea):
    make_idea(author_id, status=IdeaStatus.PUBLISHED,
              deadline=datetime.now(timezone.utc) - timedelta(hours=1))

    result = app.test_cli_runner().invoke(args=['mark-overdue'])

    assert '1 idea(s) marked overdue.' in result.output


def test_admin_edits_idea(app, admin_client, author_id, make_idea):
    idea_id = make_idea(author_id, status=IdeaStatus.PUBLISHED)

    rv = admin_client.patch(f'/api/admin/ideas/{idea_id}', json={'status': 'closed', 'price': 80000})

    assert rv.status_code == 200
    assert rv.get_json()['data']['status'] == IdeaStatus.CLOSED
    with app.app_context():
        entry = SystemLog.query.filter_by(action='UPDATE_IDEA').one()
        assert entry.before_data == {'status': 'published', 'price': 100000}


@pytest.mark.parametrize('body', [{}, {'status': 'archived'}, {'title': None}])
def test_admin_edit_validation(admin_client, author_id, make_idea, body):
    idea_id = make_idea(author_id)
    assert admin_client.patch(f'/api/admin/ideas/{idea_id}', json=body).status_code == 400


def test_admin_idea_list(admin_client, buyer_client, author_id, make_idea):
    make_idea(author_id)
    make_idea(author_id)

    body = admin_client.get('/api/admin/ideas').get_json()

    assert [i['mmb_no'] for i in body['data']] == [2, 1]
    assert buyer_client.get('/api/admin/ideas').status_code == 403
