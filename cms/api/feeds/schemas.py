# cms/api/feeds/schemas.py
from marshmallow import Schema, fields

from cms.utils.datetime_utils import DateTimeUtils


# --- 재사용을 위한 중첩 스키마 ---
class ImageSchema(Schema):
    """게시물 이미지. inline 이미지는 base64/name/type, 저장소 이미지는 url/path/filename만 가집니다."""
    base64 = fields.Str()
    name = fields.Str()
    type = fields.Str()
    processed_at = fields.Str(data_key='processedAt')
    url = fields.Str()
    path = fields.Str()
    filename = fields.Str()
    src = fields.Str(dump_only=True)


# --- API 응답 스키마 ---
class PostResponseSchema(Schema):
    """피드/관리자 목록 공통 게시물 응답. Event에는 name/description, News/Blog에는 title/category/content가 포함됩니다."""
    id = fields.Str()
    kind = fields.Function(lambda post: post.kind.collection)
    name = fields.Str()
    description = fields.Str()
    title = fields.Str()
    category = fields.Str()
    content = fields.Str()
    date = fields.Str()
    display_title = fields.Str(data_key='displayTitle')
    display_date = fields.Function(lambda post: DateTimeUtils.format_display_date(post.date), data_key='displayDate')
    images = fields.List(fields.Nested(ImageSchema))
    created_at = fields.DateTime(data_key='createdAt', allow_none=True)


class PostSummarySchema(PostResponseSchema):
    """목록 카드용 응답. 전체 이미지 대신 대표 이미지(첫 번째)만 포함합니다."""
    class Meta:
        exclude = ('images',)

    cover = fields.Method('get_cover')
    image_count = fields.Function(lambda post: len(post.images), data_key='imageCount')

    def get_cover(self, post):
        if not post.images:
            return None
        return ImageSchema().dump(post.images[0])
