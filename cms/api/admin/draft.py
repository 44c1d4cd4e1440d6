# cms/api/admin/draft.py
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cms.core.exceptions import DraftValidationError
from cms.models.image import Image
from cms.models.post import ArticlePost, EventPost, Post, PostKind
from cms.services.image_service import ImageFile, ImageIntakePipeline, IntakeResult
from cms.utils.datetime_utils import DateTimeUtils


@dataclass
class FieldProblem:
    """검증 결과 항목. reason은 'missing' 또는 'invalid'"""
    field: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class DraftManager:
    """
    관리자 화면의 작성 중인 게시물(Draft) 하나를 관리합니다.

    - 필드 값은 저장 전까지 검증하지 않습니다.
    - reset 때마다 generation이 증가하며, 이전 generation에서 시작된 이미지 처리 결과는 버려집니다.
    - 이 Draft에서 새로 업로드했지만 아직 저장되지 않은 이미지(staged)는 Draft가 버려질 때 정리됩니다.
    - 저장된 게시물에서 제거한 이미지는 수정이 저장된 뒤에만 정리합니다.
    """

    def __init__(self, pipeline: ImageIntakePipeline, kind: PostKind = PostKind.EVENT, require_article_images: bool = True):
        self.pipeline = pipeline
        self.require_article_images = require_article_images
        self._lock = threading.RLock()
        self.generation = 0
        self._set_empty(kind)

    def _set_empty(self, kind: PostKind):
        self.kind = kind
        self.post_id: Optional[str] = None
        self.fields: Dict[str, Any] = {name: "" for name in kind.form_fields}
        self.images: List[Image] = []
        self._staged: List[Image] = []
        self._pending_removals: List[Image] = []

    @property
    def is_editing(self) -> bool:
        return self.post_id is not None

    def set_field(self, name: str, value: Any) -> None:
        with self._lock:
            if name not in self.fields:
                logging.debug(f"{self.kind.label} 폼에 없는 필드라 무시합니다: {name}")
                return
            self.fields[name] = value

    def add_images(self, files: List[ImageFile]) -> IntakeResult:
        """
        파일 배치를 처리하여 성공한 이미지만 입력 순서대로 Draft 뒤에 붙입니다.
        처리 도중 Draft가 초기화되었다면 결과를 적용하지 않고 정리합니다.
        """
        with self._lock:
            generation = self.generation
            kind = self.kind

        result = self.pipeline.process(files, kind)

        with self._lock:
            if generation == self.generation:
                self.images.extend(result.succeeded)
                self._staged.extend(result.succeeded)
                return result

        logging.info(f"Draft가 바뀌어 이미지 {len(result.succeeded)}개를 버립니다 (generation {generation} -> {self.generation})")
        self.pipeline.discard(result.succeeded)
        return IntakeResult(succeeded=[], failed=result.failed, superseded=True)

    def remove_image(self, index: int) -> Image:
        """
        index 위치의 이미지를 제거합니다.
        이 Draft에서 올린 이미지는 바로 best-effort로 정리하고 (실패해도 로컬 제거는 유지),
        저장된 게시물의 이미지는 commit 때까지 정리를 미룹니다.

        :raises IndexError: 범위를 벗어난 index
        """
        with self._lock:
            if index < 0 or index >= len(self.images):
                raise IndexError(f"이미지 index가 범위를 벗어났습니다: {index}")
            image = self.images.pop(index)
            staged = any(img is image for img in self._staged)
            if staged:
                self._staged = [img for img in self._staged if img is not image]
            else:
                self._pending_removals.append(image)
        if staged:
            self.pipeline.discard([image])
        return image

    def reset(self, kind: Optional[PostKind] = None) -> None:
        """Draft를 비우고 kind(기본: 현재 종류)의 빈 Draft로 바꿉니다. 확인 없이 즉시 버립니다."""
        with self._lock:
            abandoned = self._staged
            self.generation += 1
            self._set_empty(kind or self.kind)
        if abandoned:
            self.pipeline.discard(abandoned)

    def commit(self) -> None:
        """
        저장이 성공했을 때 호출합니다. 새 이미지는 게시물에 귀속되었으므로 남기고,
        수정 중 제거한 기존 이미지만 정리한 뒤 초기화합니다.
        """
        with self._lock:
            self._staged = []
            removed = self._pending_removals
        self.reset()
        if removed:
            self.pipeline.discard(removed)

    def load(self, post: Post) -> None:
        """저장된 게시물을 수정하기 위해 Draft로 불러옵니다."""
        self.reset(post.kind)
        with self._lock:
            self.post_id = post.id
            for name, value in post.user_fields().items():
                self.fields[name] = value
            self.fields['date'] = DateTimeUtils.iso_to_date_input(post.date)
            self.images = list(post.images)

    def validate(self) -> List[FieldProblem]:
        """
        종류별 필수 필드를 확인합니다. 빈 목록이면 저장할 수 있는 상태입니다.
        예외를 던지지 않으며 Draft는 그대로 유지됩니다.
        """
        with self._lock:
            problems = []
            for name in self.kind.form_fields:
                value = self.fields.get(name)
                if value is None or (isinstance(value, str) and not value.strip()):
                    problems.append(FieldProblem(name, "missing"))
                elif name == 'date' and not DateTimeUtils.is_valid_date_string(value):
                    problems.append(FieldProblem(name, "invalid"))

            if self.kind is not PostKind.EVENT and self.require_article_images and not self.images:
                problems.append(FieldProblem("images", "missing"))
            return problems

    def to_post(self) -> Post:
        """
        검증을 통과한 Draft로 게시물 객체를 만듭니다. 날짜는 ISO 타임스탬프로 변환됩니다.

        :raises DraftValidationError: 필수 필드가 비었거나 날짜가 잘못된 경우
        """
        with self._lock:
            problems = self.validate()
            if problems:
                raise DraftValidationError(problems)
            values = {name: self.fields.get(name, "") for name in self.kind.form_fields}
            values['date'] = DateTimeUtils.date_input_to_iso(values['date'])
            images = list(self.images)
            if self.kind is PostKind.EVENT:
                return EventPost(id=self.post_id, images=images, **values)
            return ArticlePost(kind=self.kind, id=self.post_id, images=images, **values)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "kind": self.kind.collection,
                "id": self.post_id,
                "generation": self.generation,
                "fields": dict(self.fields),
                "images": [img.to_dict() for img in self.images],
            }
