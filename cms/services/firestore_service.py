# cms/services/firestore_service.py
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import Flask
from firebase_admin import firestore

from cms.core.exceptions import RemoteReadError, RemoteWriteError

# (문서 ID, 필드 딕셔너리) 목록. createdAt 내림차순으로 정렬되어 있습니다.
FullSnapshot = List[Tuple[str, Dict[str, Any]]]

CREATED_AT_FIELD = 'createdAt'


class Subscription:
    """
    onSnapshot 리스너 핸들. unsubscribe()는 여러 번 호출해도 안전합니다.
    """
    def __init__(self, collection_name: str, watch):
        self.collection_name = collection_name
        self._watch = watch
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self):
        with self._lock:
            if not self.active:
                return
            self.active = False
        try:
            self._watch.unsubscribe()
            logging.info(f"Firestore 구독 해제 (Collection: {self.collection_name})")
        except Exception as e:
            logging.warning(f"Firestore 구독 해제 중 오류 (Collection: {self.collection_name}): {e}")


class DocumentStoreService:
    """
    Firestore 컬렉션(events, news, blogs)에 대한 구독/조회/쓰기를 담당하는 서비스 클래스.
    모든 조회는 createdAt 내림차순으로 정렬됩니다.
    """

    def __init__(self, db=None):
        """
        실제 Firestore 클라이언트는 init_app 메서드를 통해 주입됩니다.
        테스트에서는 db를 직접 넘길 수 있습니다.
        """
        self.db = db

    def init_app(self, app: Flask):
        """Flask 앱 초기화 과정에서 호출되어 Firestore 클라이언트를 설정합니다."""
        self.db = firestore.client()
        logging.info("DocumentStoreService: Firestore 클라이언트가 초기화되었습니다.")

    def _client(self):
        if self.db is None:
            raise RuntimeError("DocumentStoreService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")
        return self.db

    def _ordered_query(self, collection_name: str):
        return self._client().collection(collection_name).order_by(
            CREATED_AT_FIELD, direction=firestore.Query.DESCENDING
        )

    def subscribe(self, collection_name: str, on_snapshot: Callable[[FullSnapshot], None]) -> Subscription:
        """
        컬렉션 전체에 대한 실시간 리스너를 등록합니다.
        변경이 있을 때마다 정렬된 전체 스냅샷이 on_snapshot으로 전달됩니다.

        :raises RemoteReadError: 리스너 등록 실패 시
        """
        def _callback(docs, changes, read_time):
            on_snapshot([(doc.id, doc.to_dict() or {}) for doc in docs])

        try:
            watch = self._ordered_query(collection_name).on_snapshot(_callback)
        except Exception as e:
            logging.error(f"Firestore 구독 실패 (Collection: {collection_name}): {e}", exc_info=True)
            raise RemoteReadError(f"Failed to load {collection_name}. Please try again later.") from e

        logging.info(f"Firestore 구독 시작 (Collection: {collection_name})")
        return Subscription(collection_name, watch)

    def fetch_all(self, collection_name: str) -> FullSnapshot:
        """
        컬렉션 전체를 1회 조회합니다.

        :raises RemoteReadError: 조회 실패 시
        """
        try:
            docs = self._ordered_query(collection_name).stream()
            return [(doc.id, doc.to_dict() or {}) for doc in docs]
        except Exception as e:
            logging.error(f"Firestore 조회 실패 (Collection: {collection_name}): {e}", exc_info=True)
            raise RemoteReadError(f"Failed to load {collection_name}. Please try again later.") from e

    def get(self, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        문서 하나를 조회합니다. 없으면 None.

        :raises RemoteReadError: 조회 실패 시
        """
        try:
            doc = self._client().collection(collection_name).document(doc_id).get()
        except Exception as e:
            logging.error(f"Firestore 문서 조회 실패 (Collection: {collection_name}, Doc ID: {doc_id}): {e}", exc_info=True)
            raise RemoteReadError(str(e)) from e
        if not doc.exists:
            return None
        return doc.to_dict() or {}

    def create(self, collection_name: str, data: Dict[str, Any]) -> Tuple[str, Optional[datetime]]:
        """
        새 문서를 추가합니다. 문서 ID는 Firestore가, createdAt은 서버 타임스탬프가 부여합니다.

        :return: (생성된 문서 ID, 서버 커밋 시각)
        :raises RemoteWriteError: 저장 실패 시
        """
        try:
            doc_ref = self._client().collection(collection_name).document()
            payload = dict(data)
            payload[CREATED_AT_FIELD] = firestore.SERVER_TIMESTAMP
            result = doc_ref.set(payload)
            logging.info(f"Firestore 저장 성공 (Collection: {collection_name}, Doc ID: {doc_ref.id})")
            return doc_ref.id, getattr(result, 'update_time', None)
        except Exception as e:
            logging.error(f"Firestore 저장 실패 (Collection: {collection_name}): {e}", exc_info=True)
            raise RemoteWriteError(str(e)) from e

    def update(self, collection_name: str, doc_id: str, partial: Dict[str, Any]) -> None:
        """
        기존 문서의 일부 필드를 갱신합니다. createdAt은 변경할 수 없습니다.

        :raises RemoteWriteError: 문서가 없거나 갱신 실패 시
        """
        payload = {k: v for k, v in partial.items() if k != CREATED_AT_FIELD}
        try:
            self._client().collection(collection_name).document(doc_id).update(payload)
            logging.info(f"Firestore 갱신 성공 (Collection: {collection_name}, Doc ID: {doc_id})")
        except Exception as e:
            logging.error(f"Firestore 갱신 실패 (Collection: {collection_name}, Doc ID: {doc_id}): {e}", exc_info=True)
            raise RemoteWriteError(str(e)) from e

    def delete(self, collection_name: str, doc_id: str) -> None:
        """
        문서를 삭제합니다.

        :raises RemoteWriteError: 삭제 실패 시
        """
        try:
            self._client().collection(collection_name).document(doc_id).delete()
            logging.info(f"Firestore 삭제 성공 (Collection: {collection_name}, Doc ID: {doc_id})")
        except Exception as e:
            logging.error(f"Firestore 삭제 실패 (Collection: {collection_name}, Doc ID: {doc_id}): {e}", exc_info=True)
            raise RemoteWriteError(str(e)) from e
