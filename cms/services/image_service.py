# cms/services/image_service.py
"""
이미지 입력 파이프라인.

선택된 파일을 저장 가능한 이미지 참조로 바꿉니다. 배포마다 두 전략 중 하나를 사용합니다.
- InlineImageStrategy: Pillow로 축소/재인코딩 후 base64 data URL로 문서에 포함
- ExternalStorageStrategy: Firebase Storage에 업로드하고 다운로드 URL로 참조

한 배치 안의 파일들은 서로 독립적으로 성공/실패하며, 결과는 입력 순서대로 정리됩니다.
"""
import io
import base64
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any, Union

from PIL import Image as PILImage, UnidentifiedImageError

from cms.core.exceptions import ErrorKind, ImageIntakeError
from cms.models.image import Image, InlineImage, StoredImage
from cms.models.notification import Notice
from cms.models.post import PostKind
from cms.services.storage_service import StorageService
from cms.utils.datetime_utils import DateTimeUtils


@dataclass
class ImageFile:
    """관리자가 선택한 원본 파일 한 개"""
    filename: str
    content_type: str
    data: bytes

    @classmethod
    def from_file_storage(cls, file_storage) -> "ImageFile":
        """werkzeug FileStorage(multipart 업로드)로부터 생성합니다."""
        filename = file_storage.filename or ''
        content_type = file_storage.mimetype or mimetypes.guess_type(filename)[0] or ''
        return cls(filename=filename, content_type=content_type, data=file_storage.read())

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class IntakeFailure:
    filename: str
    kind: ErrorKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "reason": self.kind.value, "message": self.message}


@dataclass
class IntakeResult:
    """배치 처리 결과. succeeded와 failed는 서로 겹치지 않으며 각각 입력 순서를 따릅니다."""
    succeeded: List[Image] = field(default_factory=list)
    failed: List[IntakeFailure] = field(default_factory=list)
    # 처리 도중 Draft가 초기화되어 결과가 적용되지 않은 경우
    superseded: bool = False

    def notice(self) -> Optional[Notice]:
        if self.superseded:
            return Notice.warning("The draft changed while images were processing. Please add them again.")
        if not self.failed:
            if not self.succeeded:
                return None
            return Notice.success(f"{len(self.succeeded)} image(s) added")
        names = ", ".join(f.filename for f in self.failed)
        if self.succeeded:
            return Notice.warning(f"{len(self.succeeded)} image(s) added, failed: {names}")
        return Notice.error(f"Failed to add image(s): {names}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": [img.to_dict() for img in self.succeeded],
            "failed": [f.to_dict() for f in self.failed],
            "superseded": self.superseded,
        }


def scaled_size(size: Tuple[int, int], max_dimension: int) -> Tuple[int, int]:
    """가로세로 비율을 유지하면서 두 변이 모두 max_dimension 이하가 되는 크기를 계산합니다."""
    width, height = size
    if width <= max_dimension and height <= max_dimension:
        return width, height
    ratio = min(max_dimension / width, max_dimension / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


class InlineImageStrategy:
    """이미지를 축소하고 JPEG로 재인코딩하여 base64 data URL로 만듭니다."""

    def __init__(self, max_dimension: int = 800, quality: int = 70):
        self.max_dimension = max_dimension
        self.quality = quality

    def transform(self, file: ImageFile, kind: PostKind) -> InlineImage:
        try:
            with PILImage.open(io.BytesIO(file.data)) as img:
                img.load()
                target = scaled_size(img.size, self.max_dimension)
                converted = img.convert('RGB')
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageIntakeError(ErrorKind.DECODE_FAILED, f"이미지를 읽을 수 없습니다: {e}", file.filename) from e

        if converted.size != target:
            converted = converted.resize(target, PILImage.LANCZOS)

        buffer = io.BytesIO()
        converted.save(buffer, format='JPEG', quality=self.quality)
        encoded = base64.b64encode(buffer.getvalue()).decode('ascii')

        return InlineImage(
            base64=f"data:image/jpeg;base64,{encoded}",
            name=file.filename,
            type=file.content_type,
            processed_at=DateTimeUtils.to_iso_string(DateTimeUtils.now()),
        )

    def discard(self, image: Image) -> None:
        # 문서 밖에 남는 자원이 없습니다.
        return None


class ExternalStorageStrategy:
    """원본 파일을 Firebase Storage에 업로드하고 영구 다운로드 URL을 돌려줍니다."""

    def __init__(self, storage_service: StorageService):
        self.storage_service = storage_service

    def transform(self, file: ImageFile, kind: PostKind) -> StoredImage:
        path = self.storage_service.build_object_path(kind.collection, file.filename)
        metadata = {
            "contentType": file.content_type,
            "originalName": file.filename,
            "uploadedAt": DateTimeUtils.to_iso_string(DateTimeUtils.now()),
        }
        try:
            self.storage_service.upload(path, file.data, file.content_type, metadata)
        except Exception as e:
            logging.error(f"이미지 업로드 실패 (file: {file.filename}): {e}", exc_info=True)
            raise ImageIntakeError(ErrorKind.UPLOAD_FAILED, f"업로드에 실패했습니다: {e}", file.filename) from e

        try:
            url = self.storage_service.get_download_url(path)
        except Exception as e:
            logging.error(f"다운로드 URL 발급 실패 (path: {path}): {e}", exc_info=True)
            # URL 없이 남은 객체는 참조할 수 없으므로 정리합니다.
            self.storage_service.delete_quietly(path)
            raise ImageIntakeError(ErrorKind.UPLOAD_FAILED, f"다운로드 URL을 받지 못했습니다: {e}", file.filename) from e

        return StoredImage(url=url, path=path, filename=file.filename)

    def discard(self, image: Image) -> None:
        if image.storage_path:
            self.storage_service.delete_quietly(image.storage_path)


ImageStrategy = Union[InlineImageStrategy, ExternalStorageStrategy]


class ImageIntakePipeline:
    """
    파일 배치를 검증하고 전략에 따라 병렬로 변환합니다.
    모든 작업이 끝날 때까지 기다린 뒤 성공/실패로 나누어 반환합니다 (전체 롤백 없음).
    """

    def __init__(self, strategy: ImageStrategy, max_bytes: int = 0, max_workers: int = 4):
        self.strategy = strategy
        self.max_bytes = max_bytes
        self.max_workers = max(1, max_workers)

    def check(self, file: ImageFile) -> None:
        """
        변환 전 검증.

        :raises ImageIntakeError: 이미지 MIME 타입이 아니거나 크기 제한을 넘은 경우
        """
        content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or ''
        if not content_type.startswith('image/'):
            raise ImageIntakeError(ErrorKind.INVALID_TYPE, f"이미지 파일이 아닙니다 ({content_type or 'unknown'})", file.filename)
        if self.max_bytes and file.size > self.max_bytes:
            raise ImageIntakeError(
                ErrorKind.TOO_LARGE,
                f"파일 크기가 제한({self.max_bytes} bytes)을 초과했습니다 ({file.size} bytes)",
                file.filename,
            )

    def _intake_one(self, file: ImageFile, kind: PostKind) -> Image:
        self.check(file)
        return self.strategy.transform(file, kind)

    def process(self, files: List[ImageFile], kind: PostKind) -> IntakeResult:
        """배치의 모든 파일을 처리하고 입력 순서대로 정리된 결과를 반환합니다."""
        if not files:
            return IntakeResult()

        outcomes: List[Union[Image, IntakeFailure, None]] = [None] * len(files)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(files))) as pool:
            futures = {pool.submit(self._intake_one, f, kind): i for i, f in enumerate(files)}
            for future in as_completed(futures):
                index = futures[future]
                filename = files[index].filename
                try:
                    outcomes[index] = future.result()
                except ImageIntakeError as e:
                    logging.warning(f"이미지 처리 실패 (file: {filename}, reason: {e.kind.value}): {e}")
                    outcomes[index] = IntakeFailure(filename, e.kind, str(e))
                except Exception as e:
                    logging.error(f"이미지 처리 중 예상치 못한 오류 (file: {filename}): {e}", exc_info=True)
                    outcomes[index] = IntakeFailure(filename, ErrorKind.DECODE_FAILED, str(e))

        result = IntakeResult()
        for outcome in outcomes:
            if isinstance(outcome, IntakeFailure):
                result.failed.append(outcome)
            else:
                result.succeeded.append(outcome)
        return result

    def discard(self, images: List[Image]) -> None:
        """채택되지 않은 이미지의 외부 자원을 best-effort로 정리합니다."""
        for image in images:
            self.strategy.discard(image)
