# cms/models/image.py
from dataclasses import dataclass
from typing import Dict, Any, Union, Optional
import logging


@dataclass
class InlineImage:
    """
    문서 안에 직접 포함되는 이미지 (inline 전략).
    축소/재인코딩된 JPEG 데이터를 data URL 형태로 보관합니다.
    """
    base64: str
    name: str
    type: str
    processed_at: str

    def to_dict(self) -> Dict[str, Any]:
        # 피드 화면은 images[i].base64 를 그대로 img src로 사용합니다.
        return {
            "base64": self.base64,
            "name": self.name,
            "type": self.type,
            "processedAt": self.processed_at,
        }

    @property
    def src(self) -> str:
        return self.base64

    @property
    def storage_path(self) -> Optional[str]:
        return None


@dataclass
class StoredImage:
    """
    Firebase Storage에 업로드된 이미지에 대한 참조 (storage 전략).
    게시물이 삭제되면 path의 객체도 함께 정리해야 합니다.
    """
    url: str
    path: str
    filename: str

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "path": self.path, "filename": self.filename}

    @property
    def src(self) -> str:
        return self.url

    @property
    def storage_path(self) -> Optional[str]:
        return self.path


Image = Union[InlineImage, StoredImage]


def image_from_dict(data: Dict[str, Any]) -> Optional[Image]:
    """Firestore 문서의 images 항목을 알맞은 이미지 타입으로 변환합니다."""
    if not isinstance(data, dict):
        logging.warning(f"이미지 항목 형식이 올바르지 않아 건너뜁니다: {data!r}")
        return None
    if data.get('path') and data.get('url'):
        return StoredImage(url=data['url'], path=data['path'], filename=data.get('filename', ''))
    if data.get('base64'):
        return InlineImage(
            base64=data['base64'],
            name=data.get('name', ''),
            type=data.get('type', 'image/jpeg'),
            processed_at=data.get('processedAt', ''),
        )
    logging.warning(f"알 수 없는 이미지 형식이라 건너뜁니다: keys={sorted(data.keys())}")
    return None
