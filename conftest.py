# conftest.py
"""
테스트 공용 픽스처.
Firestore와 Firebase Storage는 메모리 기반 가짜 객체로 대체하여 네트워크 없이 실행합니다.
"""
import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from cms.core.exceptions import RemoteReadError, RemoteWriteError
from cms.services.firestore_service import Subscription
from cms.services.storage_service import StorageService
from cms.services.image_service import ImageFile, ImageIntakePipeline, InlineImageStrategy, ExternalStorageStrategy

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeWatch:
    def __init__(self, store, collection_name, callback):
        self.store = store
        self.collection_name = collection_name
        self.callback = callback
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True
        self.store.listeners[self.collection_name].remove(self)


class FakeDocumentStore:
    """DocumentStoreService와 같은 인터페이스를 가진 메모리 저장소"""

    def __init__(self, auto_push=True):
        self.documents = {'events': {}, 'news': {}, 'blogs': {}}
        self.listeners = {'events': [], 'news': [], 'blogs': []}
        self.watches = []
        self.failures = set()
        self.calls = []
        self.auto_push = auto_push
        self._counter = 0

    def _check(self, op, collection_name, error_cls):
        if op in self.failures or f"{op}:{collection_name}" in self.failures:
            raise error_cls(f"{op} failed for {collection_name}")

    def snapshot(self, collection_name):
        docs = self.documents[collection_name]
        ordered = sorted(docs.items(), key=lambda item: item[1]['createdAt'], reverse=True)
        return [(doc_id, dict(data)) for doc_id, data in ordered]

    def push(self, collection_name):
        for watch in list(self.listeners[collection_name]):
            watch.callback(self.snapshot(collection_name))

    def subscribe(self, collection_name, on_snapshot):
        self.calls.append(('subscribe', collection_name))
        self._check('subscribe', collection_name, RemoteReadError)
        watch = FakeWatch(self, collection_name, on_snapshot)
        self.listeners[collection_name].append(watch)
        self.watches.append(watch)
        # Firestore는 리스너 등록 직후 현재 상태를 한 번 전달합니다.
        on_snapshot(self.snapshot(collection_name))
        return Subscription(collection_name, watch)

    def fetch_all(self, collection_name):
        self.calls.append(('fetch_all', collection_name))
        self._check('fetch_all', collection_name, RemoteReadError)
        return self.snapshot(collection_name)

    def get(self, collection_name, doc_id):
        self.calls.append(('get', collection_name, doc_id))
        data = self.documents[collection_name].get(doc_id)
        return dict(data) if data is not None else None

    def seed(self, collection_name, data, created_at=None):
        self._counter += 1
        doc_id = f"doc{self._counter}"
        stored = dict(data)
        stored['createdAt'] = created_at or BASE_TIME + timedelta(minutes=self._counter)
        self.documents[collection_name][doc_id] = stored
        return doc_id

    def create(self, collection_name, data):
        self.calls.append(('create', collection_name))
        self._check('create', collection_name, RemoteWriteError)
        doc_id = self.seed(collection_name, data)
        created_at = self.documents[collection_name][doc_id]['createdAt']
        if self.auto_push:
            self.push(collection_name)
        return doc_id, created_at

    def update(self, collection_name, doc_id, partial):
        self.calls.append(('update', collection_name, doc_id))
        self._check('update', collection_name, RemoteWriteError)
        if doc_id not in self.documents[collection_name]:
            raise RemoteWriteError(f"no document {doc_id}")
        self.documents[collection_name][doc_id].update(partial)
        if self.auto_push:
            self.push(collection_name)

    def delete(self, collection_name, doc_id):
        self.calls.append(('delete', collection_name, doc_id))
        self._check('delete', collection_name, RemoteWriteError)
        self.documents[collection_name].pop(doc_id, None)
        if self.auto_push:
            self.push(collection_name)

    def count(self, op):
        return sum(1 for call in self.calls if call[0] == op)


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.metadata = None
        self.content_type = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail_upload:
            raise IOError("upload refused")
        self.content_type = content_type
        self.bucket.objects[self.name] = self
        self.data = data

    def delete(self):
        if self.bucket.fail_delete:
            raise IOError("delete refused")
        self.bucket.deleted.append(self.name)
        self.bucket.objects.pop(self.name, None)

    def make_public(self):
        pass

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"


class FakeBucket:
    def __init__(self, name='test-bucket.appspot.com'):
        self.name = name
        self.objects = {}
        self.deleted = []
        self.fail_upload = False
        self.fail_delete = False

    def blob(self, path):
        return self.objects.get(path) or FakeBlob(self, path)

    def get_blob(self, path):
        return self.objects.get(path)


def make_image_bytes(width=120, height=80, fmt='PNG', color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_image_file(filename='photo.png', width=120, height=80, content_type='image/png'):
    return ImageFile(filename=filename, content_type=content_type, data=make_image_bytes(width, height))


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def storage_service(bucket):
    return StorageService(bucket=bucket, folder='uploads')


@pytest.fixture
def inline_pipeline():
    return ImageIntakePipeline(InlineImageStrategy(max_dimension=800, quality=70), max_bytes=5 * 1024 * 1024, max_workers=2)


@pytest.fixture
def storage_pipeline(storage_service):
    return ImageIntakePipeline(ExternalStorageStrategy(storage_service), max_bytes=5 * 1024 * 1024, max_workers=2)


@pytest.fixture
def image_file():
    """테스트용 이미지 파일을 만드는 팩토리"""
    return make_image_file
