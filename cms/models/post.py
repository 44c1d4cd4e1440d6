# cms/models/post.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Union

from cms.models.image import Image, image_from_dict
from cms.utils.datetime_utils import DateTimeUtils


class PostKind(Enum):
    """게시물 종류. 값은 Firestore 컬렉션 이름과 동일합니다 (소문자, 대소문자 구분)."""
    EVENT = "events"
    NEWS = "news"
    BLOG = "blogs"

    @property
    def collection(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """관리자 화면 및 알림 메시지에 쓰이는 표시 이름"""
        return _LABELS[self]

    @property
    def form_fields(self) -> Tuple[str, ...]:
        """이 종류의 폼이 다루는 필드 목록 (images 제외)"""
        if self is PostKind.EVENT:
            return ("name", "description", "date")
        return ("title", "category", "content", "date")

    @classmethod
    def from_value(cls, value: str) -> "PostKind":
        """'events', 'Events', 'EVENT' 등 어떤 표기로 와도 PostKind로 변환합니다."""
        if isinstance(value, PostKind):
            return value
        normalized = str(value or '').strip()
        for kind in cls:
            if normalized in (kind.value, kind.label, kind.name):
                return kind
        raise ValueError(f"'{value}'은(는) 유효한 게시물 종류가 아닙니다.")


_LABELS = {
    PostKind.EVENT: "Events",
    PostKind.NEWS: "News",
    PostKind.BLOG: "Blogs",
}


@dataclass
class EventPost:
    """
    Firestore 'events' 컬렉션의 문서 구조.
    이벤트는 일반 텍스트 description을 사용합니다.
    """
    name: str
    description: str
    date: str
    images: List[Image] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    kind: PostKind = field(default=PostKind.EVENT, init=False)

    @property
    def display_title(self) -> str:
        return self.name

    @property
    def body(self) -> str:
        return self.description

    def user_fields(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "date": self.date}


@dataclass
class ArticlePost:
    """
    Firestore 'news' / 'blogs' 컬렉션의 문서 구조.
    content는 리치 텍스트 에디터에서 작성된 HTML을 그대로 담습니다.
    """
    kind: PostKind
    title: str
    category: str
    content: str
    date: str
    images: List[Image] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.kind is PostKind.EVENT:
            raise ValueError("ArticlePost는 news 또는 blogs 종류만 가질 수 있습니다.")

    @property
    def display_title(self) -> str:
        return self.title

    @property
    def body(self) -> str:
        return self.content

    def user_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "category": self.category,
            "content": self.content,
            "date": self.date,
        }


Post = Union[EventPost, ArticlePost]


def post_to_document(post: Post) -> Dict[str, Any]:
    """
    저장용 문서 딕셔너리를 만듭니다.
    id와 createdAt은 저장소가 부여하므로 포함하지 않습니다.
    """
    data = post.user_fields()
    data['images'] = [img.to_dict() for img in post.images]
    return data


def post_from_document(kind: PostKind, doc_id: str, data: Dict[str, Any]) -> Post:
    """Firestore에서 읽은 문서를 게시물 종류에 맞는 데이터클래스로 변환합니다."""
    processed_data = DateTimeUtils.from_firestore(dict(data or {}))

    images = [img for img in (image_from_dict(i) for i in processed_data.get('images') or []) if img]
    created_at = processed_data.get('createdAt')
    if not isinstance(created_at, datetime):
        created_at = None

    if kind is PostKind.EVENT:
        return EventPost(
            id=doc_id,
            name=processed_data.get('name', ''),
            description=processed_data.get('description', ''),
            date=processed_data.get('date', ''),
            images=images,
            created_at=created_at,
        )
    return ArticlePost(
        kind=kind,
        id=doc_id,
        title=processed_data.get('title', ''),
        category=processed_data.get('category', ''),
        content=processed_data.get('content', ''),
        date=processed_data.get('date', ''),
        images=images,
        created_at=created_at,
    )
