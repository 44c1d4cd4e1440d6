# cms/api/admin/test_admin_routes.py
"""
관리자 API 통합 테스트 (Flask test client + 메모리 저장소)

사용법: python -m pytest cms/api/admin/test_admin_routes.py -v
"""

import io

import pytest

from cms import create_app
from conftest import make_image_bytes


@pytest.fixture
def app(store):
    app = create_app('testing', document_store=store)
    yield app
    app.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_id(client):
    response = client.post('/api/admin/sessions')
    assert response.status_code == 201
    return response.get_json()['session_id']


def _upload(client, session_id, *files):
    data = {'images': [(io.BytesIO(content), name, content_type) for name, content, content_type in files]}
    return client.post(f'/api/admin/sessions/{session_id}/draft/images', data=data, content_type='multipart/form-data')


def test_open_session_returns_state(client, store):
    store.seed('events', {'name': 'Seeded', 'description': 'd', 'date': '2024-01-01T00:00:00Z'})

    response = client.post('/api/admin/sessions')

    assert response.status_code == 201
    body = response.get_json()
    assert body['kind'] == 'events'
    assert body['label'] == 'Events'
    assert body['mode'] == 'snapshot'
    assert body['draft']['fields'] == {'name': '', 'description': '', 'date': ''}
    assert body['notice'] is None
    assert [p['name'] for p in body['posts']] == ['Seeded']
    assert body['posts'][0]['displayDate'] == 'January 1, 2024'


def test_open_session_failure(client, store):
    store.failures.add('fetch_all:blogs')
    response = client.post('/api/admin/sessions')
    assert response.status_code == 503
    assert response.get_json()['error_code'] == 'SYNC_UNAVAILABLE'


def test_unknown_session(client):
    response = client.get('/api/admin/sessions/nope')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'SESSION_NOT_FOUND'


def test_create_event_flow(client, store, session_id):
    response = client.patch(f'/api/admin/sessions/{session_id}/draft',
                            json={'name': 'Spring Fair', 'description': 'Food', 'date': '2024-04-20'})
    assert response.status_code == 200
    assert response.get_json()['problems'] == []

    response = client.post(f'/api/admin/sessions/{session_id}/draft/submit')

    assert response.status_code == 201
    body = response.get_json()
    assert body['notice'] == {'message': 'Events created successfully', 'type': 'success'}
    assert body['post']['name'] == 'Spring Fair'
    assert body['post']['date'] == '2024-04-20T00:00:00Z'
    assert body['draft']['fields']['name'] == ''
    assert [p['name'] for p in body['posts']] == ['Spring Fair']
    assert len(store.documents['events']) == 1


def test_submit_validation_error(client, store, session_id):
    response = client.post(f'/api/admin/sessions/{session_id}/draft/submit')

    assert response.status_code == 400
    body = response.get_json()
    assert body['error_code'] == 'VALIDATION_ERROR'
    assert body['notice']['type'] == 'error'
    assert {p['field'] for p in body['problems']} == {'name', 'description', 'date'}
    assert store.count('create') == 0


def test_submit_remote_failure(client, store, session_id):
    client.patch(f'/api/admin/sessions/{session_id}/draft',
                 json={'name': 'E', 'description': 'd', 'date': '2024-04-20'})
    store.failures.add('create')

    response = client.post(f'/api/admin/sessions/{session_id}/draft/submit')

    assert response.status_code == 502
    body = response.get_json()
    assert body['error_code'] == 'REMOTE_WRITE_FAILED'
    assert body['draft']['fields']['name'] == 'E'


def test_select_kind(client, session_id):
    response = client.put(f'/api/admin/sessions/{session_id}/kind', json={'kind': 'Blogs'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['kind'] == 'blogs'
    assert body['draft']['fields'] == {'title': '', 'category': '', 'content': '', 'date': ''}

    response = client.put(f'/api/admin/sessions/{session_id}/kind', json={'kind': 'recipes'})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'VALIDATION_ERROR'


def test_news_with_images_flow(client, store, session_id):
    """이미지 2장 + 이미지가 아닌 파일 1장: 2장만 붙고 저장 가능"""
    client.put(f'/api/admin/sessions/{session_id}/kind', json={'kind': 'news'})
    client.patch(f'/api/admin/sessions/{session_id}/draft',
                 json={'title': 'Launch', 'category': 'Press', 'content': '<p>Hi</p>', 'date': '2024-01-15'})

    response = _upload(client, session_id,
                       ('a.png', make_image_bytes(), 'image/png'),
                       ('notes.txt', b'hello', 'text/plain'),
                       ('b.png', make_image_bytes(), 'image/png'))

    assert response.status_code == 200
    body = response.get_json()
    assert [img['name'] for img in body['draft']['images']] == ['a.png', 'b.png']
    assert body['intake']['failed'][0]['filename'] == 'notes.txt'
    assert body['intake']['failed'][0]['reason'] == 'INVALID_TYPE'
    assert body['notice']['type'] == 'warning'

    response = client.delete(f'/api/admin/sessions/{session_id}/draft/images/1')
    assert response.status_code == 200
    assert [img['name'] for img in response.get_json()['draft']['images']] == ['a.png']

    response = client.post(f'/api/admin/sessions/{session_id}/draft/submit')
    assert response.status_code == 201
    post = response.get_json()['post']
    assert post['kind'] == 'news'
    assert post['images'][0]['src'].startswith('data:image/jpeg;base64,')


def test_upload_requires_files(client, session_id):
    response = client.post(f'/api/admin/sessions/{session_id}/draft/images', data={}, content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_PARAMETERS'


def test_remove_image_out_of_range(client, session_id):
    response = client.delete(f'/api/admin/sessions/{session_id}/draft/images/3')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'IMAGE_NOT_FOUND'


def test_edit_and_delete_post(client, store, session_id):
    doc_id = store.seed('events', {'name': 'Old', 'description': 'd', 'date': '2024-01-01T00:00:00Z'})
    client.post(f'/api/admin/sessions/{session_id}/refresh')

    response = client.post(f'/api/admin/sessions/{session_id}/posts/{doc_id}/edit')
    assert response.status_code == 200
    assert response.get_json()['draft']['id'] == doc_id

    response = client.post(f'/api/admin/sessions/{session_id}/posts/missing/edit')
    assert response.status_code == 404

    response = client.delete(f'/api/admin/sessions/{session_id}/posts/{doc_id}')
    assert response.status_code == 200
    assert response.get_json()['posts'] == []
    assert doc_id not in store.documents['events']


def test_delete_post_failure(client, store, session_id):
    store.failures.add('delete')
    response = client.delete(f'/api/admin/sessions/{session_id}/posts/doc1')
    assert response.status_code == 502
    assert response.get_json()['notice']['type'] == 'error'


def test_refresh_failure(client, store, session_id):
    store.failures.add('fetch_all')
    response = client.post(f'/api/admin/sessions/{session_id}/refresh')
    assert response.status_code == 503


def test_close_session(client, session_id):
    response = client.delete(f'/api/admin/sessions/{session_id}')
    assert response.status_code == 204
    assert client.delete(f'/api/admin/sessions/{session_id}').status_code == 404
