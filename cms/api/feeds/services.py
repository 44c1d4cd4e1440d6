# cms/api/feeds/services.py
import logging
import threading
from typing import Optional, Tuple

from cms.models.post import Post, PostKind
from cms.services.firestore_service import DocumentStoreService
from cms.services.local_cache import LocalCache
from cms.services.sync_service import RemoteSyncAdapter, SyncMode


class FeedService:
    """
    공개 화면(Blogs, Newscenter, PostList)을 위한 읽기 전용 서비스.
    live 모드에서는 첫 요청 때 구독을 열어 앱이 종료될 때까지 유지하고,
    snapshot 모드에서는 요청마다 해당 컬렉션을 새로 조회합니다.
    """

    def __init__(self, store: DocumentStoreService, mode: SyncMode = SyncMode.LIVE, initial_wait: float = 5.0):
        self.cache = LocalCache()
        self.sync = RemoteSyncAdapter(store, self.cache, mode)
        self.initial_wait = initial_wait
        self._lock = threading.Lock()

    def _ensure_fresh(self, kind: PostKind) -> None:
        if self.sync.mode is SyncMode.SNAPSHOT:
            self.sync.fetch(kind)
            return

        with self._lock:
            if not self.sync.active:
                self.sync.start()
        if not self.cache.wait_loaded(kind, self.initial_wait):
            logging.warning(f"{kind.collection} 첫 스냅샷이 {self.initial_wait}초 안에 도착하지 않았습니다.")

    def list_posts(self, kind: PostKind) -> Tuple[Post, ...]:
        """
        createdAt 내림차순 게시물 목록.

        :raises RemoteReadError: 구독/조회 실패 시
        """
        self._ensure_fresh(kind)
        return self.cache.get(kind)

    def get_post(self, kind: PostKind, post_id: str) -> Optional[Post]:
        """
        :raises RemoteReadError: 구독/조회 실패 시
        """
        self._ensure_fresh(kind)
        return self.cache.find(kind, post_id)

    def close(self) -> None:
        self.sync.stop()

