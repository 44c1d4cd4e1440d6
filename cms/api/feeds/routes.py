# cms/api/feeds/routes.py
import logging
from flask import Blueprint, jsonify, current_app

from cms.api.feeds.schemas import PostResponseSchema, PostSummarySchema
from cms.core.exceptions import RemoteReadError
from cms.models.post import PostKind

# 공개 피드(Blogs, Newscenter, PostList) 블루프린트. '/api/feeds' 접두사로 등록됩니다.
feeds_bp = Blueprint('feeds', __name__)


def _kind_or_404(collection: str):
    # 컬렉션 이름은 소문자 그대로 일치해야 합니다.
    for kind in PostKind:
        if kind.collection == collection:
            return kind, None
    return None, (jsonify({"error_code": "COLLECTION_NOT_FOUND", "message": f"'{collection}' 컬렉션은 존재하지 않습니다."}), 404)


@feeds_bp.route('/<string:collection>', methods=['GET'])
def list_posts(collection: str):
    """
    컬렉션의 게시물 목록을 최신순으로 반환합니다.
    각 항목에는 표시용 제목/날짜와 대표 이미지가 포함됩니다.
    """
    kind, error = _kind_or_404(collection)
    if error:
        return error

    feed_service = current_app.services['feeds']
    try:
        posts = feed_service.list_posts(kind)
    except RemoteReadError as e:
        logging.warning(f"피드 조회 실패 ({collection}): {e}")
        return jsonify({"error_code": "FEED_UNAVAILABLE", "message": f"Failed to load {kind.label}. Please try again later."}), 503

    return jsonify({
        "type": kind.label,
        "posts": PostSummarySchema(many=True).dump(posts),
    }), 200


@feeds_bp.route('/<string:collection>/<string:post_id>', methods=['GET'])
def get_post(collection: str, post_id: str):
    """게시물 상세. 모든 이미지를 표시 순서대로 포함합니다."""
    kind, error = _kind_or_404(collection)
    if error:
        return error

    feed_service = current_app.services['feeds']
    try:
        post = feed_service.get_post(kind, post_id)
    except RemoteReadError as e:
        logging.warning(f"피드 상세 조회 실패 ({collection}/{post_id}): {e}")
        return jsonify({"error_code": "FEED_UNAVAILABLE", "message": f"Failed to load {kind.label}. Please try again later."}), 503

    if post is None:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": "게시물을 찾을 수 없습니다."}), 404
    return jsonify(PostResponseSchema().dump(post)), 200
