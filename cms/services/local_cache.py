# cms/services/local_cache.py
"""
원격 컬렉션(events, news, blogs)의 로컬 미러.

캐시 갱신은 모두 순수 함수(reconcile, splice, remove)로 계산한 뒤 통째로 교체합니다.
같은 스냅샷을 여러 번 적용해도 결과가 같고, 같은 id의 항목은 하나만 남습니다.
"""
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from cms.models.post import Post, PostKind

# createdAt이 아직 없는 항목(서버 타임스탬프 대기 중)은 목록에서는 맨 위에 두지만,
# 같은 id의 다른 버전과 비교할 때는 가장 오래된 것으로 취급합니다.
_PENDING = datetime.max.replace(tzinfo=timezone.utc)
_UNKNOWN = datetime.min.replace(tzinfo=timezone.utc)


def _freshness(post: Post) -> datetime:
    return post.created_at or _UNKNOWN


def _order(posts: Iterable[Post]) -> Tuple[Post, ...]:
    # 안정 정렬이므로 createdAt이 같으면 입력 순서가 유지됩니다.
    return tuple(sorted(posts, key=lambda p: p.created_at or _PENDING, reverse=True))


def _dedupe(posts: Iterable[Post]) -> Dict[str, Post]:
    by_id: Dict[str, Post] = {}
    for post in posts:
        kept = by_id.get(post.id)
        if kept is None or _freshness(post) > _freshness(kept):
            by_id[post.id] = post
    return by_id


def reconcile(current: Iterable[Post], snapshot: Iterable[Post]) -> Tuple[Post, ...]:
    """
    원격 스냅샷을 기준으로 다음 캐시 상태를 계산합니다.

    - 스냅샷에 없는 id는 제거됩니다 (스냅샷이 진실의 원천).
    - 같은 id가 현재 캐시와 스냅샷 양쪽에 있으면 createdAt이 더 최신인 쪽을 유지합니다.
    - 결과는 createdAt 내림차순입니다.
    """
    incoming = _dedupe(snapshot)
    existing = _dedupe(p for p in current if p.id in incoming)
    merged = _dedupe(list(incoming.values()) + list(existing.values()))
    return _order(merged.values())


def splice(current: Iterable[Post], post: Post) -> Tuple[Post, ...]:
    """쓰기 직후의 낙관적 반영. 같은 id가 있으면 교체하고, 없으면 앞에 추가합니다."""
    others = [p for p in current if p.id != post.id]
    return _order([post] + others)


def remove(current: Iterable[Post], post_id: str) -> Tuple[Post, ...]:
    return tuple(p for p in current if p.id != post_id)


class LocalCache:
    """
    종류(kind)별 게시물 목록을 보관하는 캐시 컨테이너.
    Firestore 리스너는 별도 스레드에서 호출되므로 교체는 lock 안에서 이루어집니다.
    쓰기는 RemoteSyncAdapter만 수행합니다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._loaded_changed = threading.Condition(self._lock)
        self._entries: Dict[PostKind, Tuple[Post, ...]] = {kind: () for kind in PostKind}
        self._loaded = {kind: False for kind in PostKind}

    def get(self, kind: PostKind) -> Tuple[Post, ...]:
        with self._lock:
            return self._entries[kind]

    def find(self, kind: PostKind, post_id: str) -> Optional[Post]:
        for post in self.get(kind):
            if post.id == post_id:
                return post
        return None

    def is_loaded(self, kind: PostKind) -> bool:
        with self._lock:
            return self._loaded[kind]

    def wait_loaded(self, kind: PostKind, timeout: float) -> bool:
        """첫 스냅샷이 반영될 때까지 최대 timeout초 기다립니다."""
        with self._loaded_changed:
            return self._loaded_changed.wait_for(lambda: self._loaded[kind], timeout=timeout)

    def apply_snapshot(self, kind: PostKind, snapshot: List[Post]) -> None:
        with self._lock:
            self._entries[kind] = reconcile(self._entries[kind], snapshot)
            self._loaded[kind] = True
            self._loaded_changed.notify_all()

    def apply_write(self, kind: PostKind, post: Post) -> None:
        with self._lock:
            self._entries[kind] = splice(self._entries[kind], post)

    def apply_delete(self, kind: PostKind, post_id: str) -> None:
        with self._lock:
            self._entries[kind] = remove(self._entries[kind], post_id)

    def clear(self) -> None:
        with self._lock:
            for kind in PostKind:
                self._entries[kind] = ()
                self._loaded[kind] = False
