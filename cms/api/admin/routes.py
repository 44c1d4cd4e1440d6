# cms/api/admin/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from marshmallow import ValidationError

from cms.api.admin.schemas import KindSchema, DraftFieldsSchema
from cms.api.feeds.schemas import PostResponseSchema
from cms.core.exceptions import RemoteReadError
from cms.services.image_service import ImageFile

# 관리자 대시보드(Upload 화면)를 위한 블루프린트. '/api/admin' 접두사로 등록됩니다.
admin_bp = Blueprint('admin', __name__)


def _session_state(session):
    """관리자 화면이 그리는 데 필요한 현재 상태 전체"""
    return {
        "session_id": session.session_id,
        "kind": session.kind.collection,
        "label": session.kind.label,
        "mode": session.sync.mode.value,
        "draft": session.draft.to_dict(),
        "problems": [p.to_dict() for p in session.draft.validate()],
        "notice": session.notice.to_dict() if session.notice else None,
        "posts": PostResponseSchema(many=True).dump(session.posts()),
    }


def _get_session(session_id: str):
    session = current_app.services['admin_sessions'].get(session_id)
    if session is None:
        return None, (jsonify({"error_code": "SESSION_NOT_FOUND", "message": "관리자 세션을 찾을 수 없습니다."}), 404)
    return session, None


@admin_bp.route('/sessions', methods=['POST'])
def open_session():
    """
    관리자 세션을 엽니다. 로컬 캐시를 만들고 events/news/blogs 구독(또는 1회 조회)을 시작합니다.
    """
    try:
        session = current_app.services['admin_sessions'].open()
        return jsonify(_session_state(session)), 201
    except RemoteReadError as e:
        logging.warning(f"관리자 세션 시작 실패: {e}")
        return jsonify({"error_code": "SYNC_UNAVAILABLE", "message": str(e)}), 503


@admin_bp.route('/sessions/<string:session_id>', methods=['GET'])
def get_session(session_id: str):
    session, error = _get_session(session_id)
    if error:
        return error
    return jsonify(_session_state(session)), 200


@admin_bp.route('/sessions/<string:session_id>', methods=['DELETE'])
def close_session(session_id: str):
    """세션을 닫고 모든 구독을 해제합니다."""
    if not current_app.services['admin_sessions'].close(session_id):
        return jsonify({"error_code": "SESSION_NOT_FOUND", "message": "관리자 세션을 찾을 수 없습니다."}), 404
    return Response(status=204)


@admin_bp.route('/sessions/<string:session_id>/kind', methods=['PUT'])
def select_kind(session_id: str):
    """편집 대상 종류를 바꿉니다. 작성 중이던 Draft는 확인 없이 버려집니다."""
    session, error = _get_session(session_id)
    if error:
        return error
    try:
        kind = KindSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    session.select_kind(kind)
    return jsonify(_session_state(session)), 200


@admin_bp.route('/sessions/<string:session_id>/draft', methods=['PATCH'])
def update_draft(session_id: str):
    session, error = _get_session(session_id)
    if error:
        return error
    try:
        values = DraftFieldsSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    session.set_fields(values)
    return jsonify(_session_state(session)), 200


@admin_bp.route('/sessions/<string:session_id>/draft/images', methods=['POST'])
def add_images(session_id: str):
    """
    multipart 'images' 필드로 받은 파일들을 Draft에 추가합니다.
    일부 파일만 실패할 수 있으며, 성공/실패 목록을 함께 반환합니다.
    """
    session, error = _get_session(session_id)
    if error:
        return error

    uploads = request.files.getlist('images')
    if not uploads:
        return jsonify({"error_code": "INVALID_PARAMETERS", "message": "'images' 파일이 필요합니다."}), 400

    files = [ImageFile.from_file_storage(f) for f in uploads]
    result = session.add_images(files)
    body = _session_state(session)
    body['intake'] = result.to_dict()
    return jsonify(body), 200


@admin_bp.route('/sessions/<string:session_id>/draft/images/<int:index>', methods=['DELETE'])
def remove_image(session_id: str, index: int):
    session, error = _get_session(session_id)
    if error:
        return error
    try:
        session.remove_image(index)
    except IndexError as e:
        return jsonify({"error_code": "IMAGE_NOT_FOUND", "message": str(e)}), 404
    return jsonify(_session_state(session)), 200


@admin_bp.route('/sessions/<string:session_id>/draft/submit', methods=['POST'])
def submit_draft(session_id: str):
    """
    Draft를 저장합니다.
    - 검증 실패: 400, 원격 저장소에는 요청하지 않음
    - 저장 실패: 502, Draft는 그대로 유지
    - 성공: 생성 201 / 수정 200, Draft 초기화
    """
    session, error = _get_session(session_id)
    if error:
        return error

    editing = session.draft.is_editing
    outcome = session.submit()
    body = _session_state(session)
    if outcome.problems:
        body['error_code'] = "VALIDATION_ERROR"
        return jsonify(body), 400
    if not outcome.ok:
        body['error_code'] = "REMOTE_WRITE_FAILED"
        return jsonify(body), 502
    body['post'] = PostResponseSchema().dump(outcome.post)
    return jsonify(body), 200 if editing else 201


@admin_bp.route('/sessions/<string:session_id>/posts/<string:post_id>/edit', methods=['POST'])
def edit_post(session_id: str, post_id: str):
    session, error = _get_session(session_id)
    if error:
        return error
    notice = session.edit(post_id)
    return jsonify(_session_state(session)), 404 if notice.is_error else 200


@admin_bp.route('/sessions/<string:session_id>/posts/<string:post_id>', methods=['DELETE'])
def delete_post(session_id: str, post_id: str):
    session, error = _get_session(session_id)
    if error:
        return error
    outcome = session.delete(post_id)
    body = _session_state(session)
    if not outcome.ok:
        body['error_code'] = "REMOTE_WRITE_FAILED"
        return jsonify(body), 502
    return jsonify(body), 200


@admin_bp.route('/sessions/<string:session_id>/refresh', methods=['POST'])
def refresh_session(session_id: str):
    """캐시를 원격 저장소에서 다시 읽어옵니다 (snapshot 모드의 수동 갱신)."""
    session, error = _get_session(session_id)
    if error:
        return error
    notice = session.refresh()
    return jsonify(_session_state(session)), 503 if notice else 200
