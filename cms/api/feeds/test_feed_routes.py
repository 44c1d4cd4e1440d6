# cms/api/feeds/test_feed_routes.py
"""
공개 피드 API 및 FeedService 테스트

사용법: python -m pytest cms/api/feeds/test_feed_routes.py -v
"""

import pytest

from cms import create_app
from cms.api.feeds.services import FeedService
from cms.models.post import PostKind
from cms.services.sync_service import SyncMode

INLINE_IMAGE = {'base64': 'data:image/jpeg;base64,AAAA', 'name': 'cover.png', 'type': 'image/png', 'processedAt': '2024-01-01T00:00:00Z'}
STORED_IMAGE = {'url': 'https://example.com/x.jpg', 'path': 'uploads/blogs/1_x.jpg', 'filename': 'x.jpg'}


@pytest.fixture
def app(store):
    app = create_app('testing', document_store=store)
    yield app
    app.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


def test_list_posts_newest_first(client, store):
    store.seed('news', {'title': 'Older', 'category': 'c', 'content': 'x', 'date': '2024-01-01T00:00:00Z',
                        'images': [INLINE_IMAGE]})
    store.seed('news', {'title': 'Newer', 'category': 'c', 'content': 'x', 'date': '', 'images': []})

    response = client.get('/api/feeds/news')

    assert response.status_code == 200
    body = response.get_json()
    assert body['type'] == 'News'
    assert [p['displayTitle'] for p in body['posts']] == ['Newer', 'Older']

    newer, older = body['posts']
    assert newer['cover'] is None
    assert newer['imageCount'] == 0
    assert newer['displayDate'] == 'No date provided'
    assert older['cover']['src'] == INLINE_IMAGE['base64']
    assert older['displayDate'] == 'January 1, 2024'
    assert 'images' not in older


def test_list_reflects_latest_remote_state(client, store):
    """snapshot 모드에서는 요청마다 다시 조회"""
    assert client.get('/api/feeds/events').get_json()['posts'] == []

    store.seed('events', {'name': 'Fair', 'description': 'd', 'date': '2024-04-20T00:00:00Z'})

    posts = client.get('/api/feeds/events').get_json()['posts']
    assert [p['name'] for p in posts] == ['Fair']


def test_unknown_collection(client):
    response = client.get('/api/feeds/recipes')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'COLLECTION_NOT_FOUND'

    # 컬렉션 이름은 대소문자를 구분
    assert client.get('/api/feeds/News').status_code == 404


def test_post_detail(client, store):
    doc_id = store.seed('blogs', {'title': 'Trip', 'category': 'Travel', 'content': '<p>x</p>',
                                  'date': '2024-02-02T00:00:00Z', 'images': [STORED_IMAGE, INLINE_IMAGE]})

    response = client.get(f'/api/feeds/blogs/{doc_id}')

    assert response.status_code == 200
    body = response.get_json()
    assert body['id'] == doc_id
    assert body['kind'] == 'blogs'
    assert body['content'] == '<p>x</p>'
    assert [img['src'] for img in body['images']] == [STORED_IMAGE['url'], INLINE_IMAGE['base64']]
    assert body['createdAt'].startswith('2024-01-01T00:')


def test_post_detail_not_found(client):
    response = client.get('/api/feeds/blogs/missing')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'POST_NOT_FOUND'


def test_feed_unavailable(client, store):
    store.failures.add('fetch_all:news')
    response = client.get('/api/feeds/news')
    assert response.status_code == 503
    assert response.get_json()['error_code'] == 'FEED_UNAVAILABLE'


def test_unknown_route_returns_json_error(client):
    response = client.get('/api/unknown')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'NOT_FOUND'


def test_live_feed_subscribes_once(store):
    """live 모드: 첫 요청 때 구독을 열고 이후에는 캐시에서 응답"""
    store.seed('events', {'name': 'A', 'description': 'd', 'date': ''})
    feeds = FeedService(store, SyncMode.LIVE, initial_wait=0.1)

    assert [p.name for p in feeds.list_posts(PostKind.EVENT)] == ['A']
    feeds.list_posts(PostKind.EVENT)
    assert store.count('subscribe') == 3

    doc_id = store.seed('events', {'name': 'B', 'description': 'd', 'date': ''})
    store.push('events')
    assert feeds.get_post(PostKind.EVENT, doc_id).name == 'B'

    feeds.close()
    assert store.listeners['events'] == []
