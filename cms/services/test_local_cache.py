# cms/services/test_local_cache.py
"""
로컬 캐시 병합 규칙 테스트

사용법: python -m pytest cms/services/test_local_cache.py -v
"""

import threading
from datetime import datetime, timedelta, timezone

from cms.models.post import ArticlePost, EventPost, PostKind
from cms.services.local_cache import LocalCache, reconcile, remove, splice

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _event(post_id, minutes, name='event'):
    created_at = T0 + timedelta(minutes=minutes) if minutes is not None else None
    return EventPost(name=name, description='desc', date='2024-03-01T00:00:00Z', id=post_id, created_at=created_at)


def _ids(posts):
    return [p.id for p in posts]


def test_reconcile_orders_by_created_at_desc():
    """결과는 createdAt 내림차순"""
    snapshot = [_event('a', 1), _event('c', 3), _event('b', 2)]
    assert _ids(reconcile((), snapshot)) == ['c', 'b', 'a']


def test_reconcile_is_idempotent():
    """같은 스냅샷을 여러 번 적용해도 결과가 같아야 함"""
    current = (_event('a', 1), _event('x', 9))
    snapshot = [_event('a', 1), _event('b', 2)]

    once = reconcile(current, snapshot)
    twice = reconcile(once, snapshot)

    assert once == twice
    assert _ids(once) == ['b', 'a']


def test_reconcile_deduplicates_by_id_keeping_freshest():
    """같은 id가 여러 번 나오면 createdAt이 가장 최신인 것 하나만 남음"""
    snapshot = [_event('a', 1, name='old'), _event('a', 5, name='new'), _event('b', 2)]

    result = reconcile((), snapshot)

    assert _ids(result) == ['a', 'b']
    assert result[0].name == 'new'


def test_reconcile_keeps_fresher_local_copy():
    """캐시에 더 최신 버전이 있으면 그것을 유지하고, 스냅샷에 없는 id는 제거"""
    current = (_event('a', 10, name='local'), _event('gone', 4))
    snapshot = [_event('a', 1, name='remote')]

    result = reconcile(current, snapshot)

    assert _ids(result) == ['a']
    assert result[0].name == 'local'


def test_reconcile_pending_timestamp_sorts_first_but_loses_ties():
    """createdAt이 아직 없는 항목은 목록 맨 위, 같은 id의 확정 버전이 오면 그것으로 대체"""
    result = reconcile((), [_event('a', 1), _event('pending', None)])
    assert _ids(result) == ['pending', 'a']

    result = reconcile(result, [_event('a', 1), _event('pending', 7, name='confirmed')])
    assert _ids(result) == ['pending', 'a']
    assert result[0].created_at == T0 + timedelta(minutes=7)


def test_splice_replaces_same_id_and_keeps_order():
    """낙관적 반영: 같은 id는 교체, 새 id는 정렬 위치에 삽입"""
    current = (_event('b', 2), _event('a', 1))

    result = splice(current, _event('c', 3))
    assert _ids(result) == ['c', 'b', 'a']

    result = splice(result, _event('b', 2, name='edited'))
    assert _ids(result) == ['c', 'b', 'a']
    assert result[1].name == 'edited'


def test_remove_filters_out_id():
    current = (_event('b', 2), _event('a', 1))
    assert _ids(remove(current, 'b')) == ['a']
    assert _ids(remove(current, 'missing')) == ['b', 'a']


def test_cache_keeps_kinds_separate():
    """종류별로 독립된 목록을 유지"""
    cache = LocalCache()
    article = ArticlePost(kind=PostKind.NEWS, title='t', category='c', content='<p>x</p>',
                          date='2024-03-01T00:00:00Z', id='n1', created_at=T0)

    cache.apply_snapshot(PostKind.NEWS, [article])

    assert cache.get(PostKind.NEWS) == (article,)
    assert cache.get(PostKind.BLOG) == ()
    assert cache.is_loaded(PostKind.NEWS)
    assert not cache.is_loaded(PostKind.EVENT)
    assert cache.find(PostKind.NEWS, 'n1') is article
    assert cache.find(PostKind.NEWS, 'missing') is None


def test_cache_write_and_delete():
    cache = LocalCache()
    cache.apply_snapshot(PostKind.EVENT, [_event('a', 1)])

    cache.apply_write(PostKind.EVENT, _event('b', 2))
    assert _ids(cache.get(PostKind.EVENT)) == ['b', 'a']

    cache.apply_delete(PostKind.EVENT, 'a')
    assert _ids(cache.get(PostKind.EVENT)) == ['b']

    cache.clear()
    assert cache.get(PostKind.EVENT) == ()
    assert not cache.is_loaded(PostKind.EVENT)


def test_wait_loaded():
    """첫 스냅샷이 도착하면 대기 중인 스레드가 깨어나야 함"""
    cache = LocalCache()
    assert cache.wait_loaded(PostKind.BLOG, timeout=0.01) is False

    timer = threading.Timer(0.05, cache.apply_snapshot, args=(PostKind.BLOG, []))
    timer.start()
    try:
        assert cache.wait_loaded(PostKind.BLOG, timeout=2.0) is True
    finally:
        timer.cancel()
