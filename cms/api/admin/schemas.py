# cms/api/admin/schemas.py
from marshmallow import Schema, fields, validate, post_load, EXCLUDE

from cms.models.post import PostKind

_KIND_CHOICES = [kind.value for kind in PostKind] + [kind.label for kind in PostKind]


class KindSchema(Schema):
    """PUT /api/admin/sessions/{sid}/kind 요청 본문의 유효성을 검사합니다."""
    kind = fields.Str(required=True, validate=validate.OneOf(_KIND_CHOICES))

    @post_load
    def to_kind(self, data, **kwargs):
        return PostKind.from_value(data['kind'])


class DraftFieldsSchema(Schema):
    """
    PATCH /api/admin/sessions/{sid}/draft 요청 본문.
    값은 저장 전까지 검증하지 않으므로 빈 문자열도 허용합니다.
    """
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    date = fields.Str(allow_none=True)
    title = fields.Str(allow_none=True)
    category = fields.Str(allow_none=True)
    content = fields.Str(allow_none=True)
