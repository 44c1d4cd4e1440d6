# cms/api/admin/services.py
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from cms.api.admin.draft import DraftManager, FieldProblem
from cms.core.exceptions import DraftValidationError, RemoteReadError
from cms.models.notification import Notice
from cms.models.post import Post, PostKind
from cms.services.firestore_service import DocumentStoreService
from cms.services.image_service import ImageFile, ImageIntakePipeline, IntakeResult
from cms.services.local_cache import LocalCache
from cms.services.storage_service import StorageService
from cms.services.sync_service import RemoteSyncAdapter, SyncMode, WriteOutcome


@dataclass
class SubmitOutcome:
    ok: bool
    notice: Notice
    problems: List[FieldProblem] = field(default_factory=list)
    post: Optional[Post] = None


class AdminSession:
    """
    관리자 대시보드(Upload 화면) 한 개에 해당하는 세션.
    Draft 하나, 로컬 캐시 하나, 동기화 어댑터 하나를 소유합니다.
    open()으로 구독을 시작하고 close()로 반드시 해제합니다.
    """

    def __init__(self,
                 session_id: str,
                 store: DocumentStoreService,
                 pipeline: ImageIntakePipeline,
                 storage_service: Optional[StorageService] = None,
                 mode: SyncMode = SyncMode.LIVE,
                 require_article_images: bool = True):
        self.session_id = session_id
        self.cache = LocalCache()
        self.sync = RemoteSyncAdapter(store, self.cache, mode, storage_service)
        self.draft = DraftManager(pipeline, PostKind.EVENT, require_article_images)
        self.notice: Optional[Notice] = None

    # --- 수명 주기 ---
    def open(self) -> None:
        """
        :raises RemoteReadError: 구독/조회 실패 시 (이미 연 구독은 해제된 상태)
        """
        self.sync.start()
        logging.info(f"관리자 세션 시작 (session: {self.session_id}, mode: {self.sync.mode.value})")

    def close(self) -> None:
        # 저장되지 않은 업로드 이미지를 정리한 뒤 구독을 해제합니다.
        try:
            self.draft.reset()
        finally:
            self.sync.stop()
        logging.info(f"관리자 세션 종료 (session: {self.session_id})")

    def __enter__(self) -> "AdminSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # --- Draft ---
    @property
    def kind(self) -> PostKind:
        return self.draft.kind

    def select_kind(self, kind: PostKind) -> None:
        """종류를 바꾸면 현재 Draft는 확인 없이 버려집니다."""
        self.draft.reset(kind)
        self.notice = None

    def set_fields(self, values: Dict[str, object]) -> None:
        for name, value in values.items():
            self.draft.set_field(name, value)

    def add_images(self, files: List[ImageFile]) -> IntakeResult:
        result = self.draft.add_images(files)
        self.notice = result.notice()
        return result

    def remove_image(self, index: int) -> None:
        self.draft.remove_image(index)

    def submit(self) -> SubmitOutcome:
        """
        Draft를 검증하고 생성(또는 수정)합니다.
        검증 실패나 원격 실패 시 Draft는 그대로 남아 다시 제출할 수 있습니다.
        """
        kind = self.draft.kind
        try:
            post = self.draft.to_post()
        except DraftValidationError as e:
            if all(p.field == 'images' for p in e.problems):
                notice = Notice.error("Please upload at least one image")
            else:
                notice = Notice.error(str(e))
            self.notice = notice
            return SubmitOutcome(False, notice, e.problems)

        if self.draft.is_editing:
            outcome = self.sync.update(kind, post)
        else:
            outcome = self.sync.create(kind, post)

        if outcome.ok:
            self.draft.commit()
        self.notice = outcome.notice
        return SubmitOutcome(outcome.ok, outcome.notice, post=outcome.post)

    # --- 목록 ---
    def posts(self, kind: Optional[PostKind] = None) -> Tuple[Post, ...]:
        return self.cache.get(kind or self.kind)

    def edit(self, post_id: str) -> Notice:
        post = self.cache.find(self.kind, post_id)
        if post is None:
            self.notice = Notice.error(f"{self.kind.label} not found")
        else:
            self.draft.load(post)
            self.notice = Notice.info(f"Editing {post.display_title}")
        return self.notice

    def delete(self, post_id: str) -> WriteOutcome:
        kind = self.kind
        outcome = self.sync.delete(kind, post_id)
        if outcome.ok and self.draft.post_id == post_id:
            # 수정 중이던 게시물이 삭제되었으므로 Draft도 비웁니다.
            self.draft.reset(kind)
        self.notice = outcome.notice
        return outcome

    def refresh(self) -> Optional[Notice]:
        notice = self.sync.refresh()
        if notice:
            self.notice = notice
        return notice


class AdminSessionRegistry:
    """열려 있는 관리자 세션을 session_id로 보관합니다."""

    def __init__(self, factory: Callable[[str], AdminSession]):
        self.factory = factory
        self._sessions: Dict[str, AdminSession] = {}
        self._lock = threading.Lock()

    def open(self) -> AdminSession:
        """
        :raises RemoteReadError: 세션 시작 실패 시 (세션은 등록되지 않음)
        """
        session = self.factory(str(uuid.uuid4()))
        try:
            session.open()
        except RemoteReadError:
            session.close()
            raise
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[AdminSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
        for session in sessions:
            try:
                session.close()
            except Exception as e:
                logging.error(f"관리자 세션 종료 중 오류 (session: {session.session_id}): {e}", exc_info=True)
