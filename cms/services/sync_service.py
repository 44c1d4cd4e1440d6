# cms/services/sync_service.py
import logging
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from typing import Dict, Iterable, Optional

from cms.core.exceptions import RemoteReadError, RemoteWriteError, StorageCleanupError
from cms.models.notification import Notice
from cms.models.post import Post, PostKind, post_from_document, post_to_document
from cms.services.firestore_service import DocumentStoreService, FullSnapshot, Subscription
from cms.services.local_cache import LocalCache
from cms.services.storage_service import StorageService


class SyncMode(Enum):
    LIVE = "live"        # onSnapshot 구독으로 계속 최신 상태 유지
    SNAPSHOT = "snapshot"  # 활성화 시(또는 refresh 호출 시) 1회 조회

    @classmethod
    def from_value(cls, value) -> "SyncMode":
        if isinstance(value, SyncMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"'{value}'은(는) 유효한 동기화 모드가 아닙니다 (live, snapshot).")


@dataclass
class WriteOutcome:
    """쓰기 작업 결과. 실패해도 예외 대신 알림으로 전달됩니다."""
    ok: bool
    notice: Notice
    post: Optional[Post] = None


class RemoteSyncAdapter:
    """
    LocalCache와 Firestore 사이를 연결하는 어댑터.
    캐시를 변경할 수 있는 유일한 객체이며, 모든 원격 실패를 Notice로 변환합니다.
    """

    def __init__(self,
                 store: DocumentStoreService,
                 cache: LocalCache,
                 mode: SyncMode = SyncMode.LIVE,
                 storage_service: Optional[StorageService] = None,
                 kinds: Iterable[PostKind] = tuple(PostKind)):
        self.store = store
        self.cache = cache
        self.mode = SyncMode.from_value(mode)
        self.storage_service = storage_service
        self.kinds = tuple(kinds)
        self._subscriptions: Dict[PostKind, Subscription] = {}

    # --- 수명 주기 ---
    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> None:
        """
        live 모드: 컬렉션마다 구독을 엽니다. 중간에 실패하면 이미 연 구독을 모두 해제하고 예외를 다시 올립니다.
        snapshot 모드: 모든 컬렉션을 1회 조회합니다.

        :raises RemoteReadError: 구독 또는 조회 실패 시
        """
        if self.mode is SyncMode.SNAPSHOT:
            for kind in self.kinds:
                self.fetch(kind)
            return

        try:
            for kind in self.kinds:
                if kind in self._subscriptions:
                    continue
                self._subscriptions[kind] = self.store.subscribe(kind.collection, partial(self._on_snapshot, kind))
        except RemoteReadError:
            self.stop()
            raise

    def stop(self) -> None:
        """열려 있는 모든 구독을 해제합니다. 여러 번 호출해도 안전합니다."""
        subscriptions, self._subscriptions = self._subscriptions, {}
        for subscription in subscriptions.values():
            subscription.unsubscribe()

    def __enter__(self) -> "RemoteSyncAdapter":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # --- 읽기 ---
    def _on_snapshot(self, kind: PostKind, snapshot: FullSnapshot) -> None:
        # Firestore 리스너 스레드에서 호출되므로 예외를 밖으로 내보내지 않습니다.
        try:
            self.cache.apply_snapshot(kind, self._to_posts(kind, snapshot))
            logging.debug(f"{kind.collection} 스냅샷 반영 ({len(snapshot)}건)")
        except Exception as e:
            logging.error(f"{kind.collection} 스냅샷 반영 실패: {e}", exc_info=True)

    def _to_posts(self, kind: PostKind, snapshot: FullSnapshot):
        return [post_from_document(kind, doc_id, data) for doc_id, data in snapshot]

    def fetch(self, kind: PostKind) -> None:
        """
        컬렉션 하나를 1회 조회하여 캐시에 반영합니다.

        :raises RemoteReadError: 조회 실패 시
        """
        snapshot = self.store.fetch_all(kind.collection)
        self.cache.apply_snapshot(kind, self._to_posts(kind, snapshot))

    def refresh(self, kinds: Optional[Iterable[PostKind]] = None) -> Optional[Notice]:
        """
        지정된(기본: 전체) 컬렉션을 다시 조회합니다.
        한 컬렉션이 실패해도 나머지는 계속 조회하고, 실패한 컬렉션을 모아 오류 알림 하나로 반환합니다.
        """
        failed = []
        for kind in (tuple(kinds) if kinds else self.kinds):
            try:
                self.fetch(kind)
            except RemoteReadError as e:
                logging.warning(f"{kind.collection} 재조회 실패: {e}")
                failed.append(kind.collection)
        if failed:
            return Notice.error(f"Failed to load {', '.join(failed)}. Please try again later.")
        return None

    # --- 쓰기 ---
    def create(self, kind: PostKind, post: Post) -> WriteOutcome:
        """
        새 게시물을 저장하고, 성공하면 캐시에 바로 반영합니다.
        live 모드에서도 반영하며, 이후 도착하는 스냅샷과 id 기준으로 병합됩니다.
        """
        try:
            doc_id, created_at = self.store.create(kind.collection, post_to_document(post))
        except RemoteWriteError as e:
            logging.warning(f"{kind.label} 생성 실패: {e}")
            return WriteOutcome(False, Notice.error(f"Failed to create {kind.label}. Please try again."))

        saved = replace(post, id=doc_id, created_at=created_at)
        self.cache.apply_write(kind, saved)
        return WriteOutcome(True, Notice.success(f"{kind.label} created successfully"), saved)

    def update(self, kind: PostKind, post: Post) -> WriteOutcome:
        """기존 게시물을 갱신합니다. createdAt은 캐시에 있던 값을 유지합니다."""
        if not post.id:
            raise ValueError("id가 없는 게시물은 갱신할 수 없습니다.")
        try:
            self.store.update(kind.collection, post.id, post_to_document(post))
        except RemoteWriteError as e:
            logging.warning(f"{kind.label} 갱신 실패 (id: {post.id}): {e}")
            return WriteOutcome(False, Notice.error(f"Failed to update {kind.label}. Please try again."))

        cached = self.cache.find(kind, post.id)
        saved = replace(post, created_at=cached.created_at if cached else post.created_at)
        self.cache.apply_write(kind, saved)
        return WriteOutcome(True, Notice.success(f"{kind.label} updated successfully"), saved)

    def delete(self, kind: PostKind, post_id: str) -> WriteOutcome:
        """
        게시물을 삭제합니다. 저장소에 업로드된 이미지는 best-effort로 정리하며,
        정리 실패는 로그로만 남기고 삭제 결과에 영향을 주지 않습니다.
        """
        post = self.cache.find(kind, post_id)
        if post is None:
            try:
                data = self.store.get(kind.collection, post_id)
            except RemoteReadError:
                data = None
            if data is not None:
                post = post_from_document(kind, post_id, data)

        try:
            self.store.delete(kind.collection, post_id)
        except RemoteWriteError as e:
            logging.warning(f"{kind.label} 삭제 실패 (id: {post_id}): {e}")
            return WriteOutcome(False, Notice.error(f"Failed to delete {kind.label}. Please try again."))

        self.cache.apply_delete(kind, post_id)
        if post is not None:
            self._cleanup_images(post)
        return WriteOutcome(True, Notice.success(f"{kind.label} deleted successfully"), post)

    def _cleanup_images(self, post: Post) -> None:
        paths = [img.storage_path for img in post.images if img.storage_path]
        if not paths:
            return
        if self.storage_service is None:
            logging.warning(f"StorageService가 없어 이미지 {len(paths)}개를 정리하지 못했습니다 (post: {post.id})")
            return
        for path in paths:
            try:
                self.storage_service.delete(path)
            except StorageCleanupError as e:
                logging.error(f"{e} (post: {post.id})")
