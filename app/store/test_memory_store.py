# app/store/test_memory_store.py
import asyncio
import json
import threading
import time
from datetime import datetime, timezone

import pytest

from app.models.post import Category
from app.sample_posts import at, make_post_data
from app.core.exceptions import NotFoundError
from app.store.base import SERVER_TIMESTAMP, DocumentQuery
from app.store.memory_store import InMemoryDocumentStore

QUERY = DocumentQuery(order_by='created_at', descending=True)


@pytest.mark.asyncio
async def test_server_timestamp_resolves_to_one_value_per_write():
    fixed = datetime(2024, 5, 1, tzinfo=timezone.utc)
    store = InMemoryDocumentStore(clock=lambda: fixed)

    doc_id = await store.add_document({'title': 't', 'created_at': SERVER_TIMESTAMP, 'updated_at': SERVER_TIMESTAMP})
    document = await store.get_document(doc_id)

    assert document.data['created_at'] == fixed
    assert document.data['updated_at'] == fixed


@pytest.mark.asyncio
async def test_get_missing_document_returns_none(store):
    assert await store.get_document('missing') is None


@pytest.mark.asyncio
async def test_returned_data_is_a_copy(store):
    doc_id = await store.add_document(make_post_data(1))
    document = await store.get_document(doc_id)
    document.data['title'] = 'changed'

    assert (await store.get_document(doc_id)).data['title'] == 'post-1'


@pytest.mark.asyncio
async def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.update_document('missing', {'title': 'x'})


@pytest.mark.asyncio
async def test_delete_is_idempotent(store):
    doc_id = await store.add_document(make_post_data(1))
    await store.delete_document(doc_id)
    await store.delete_document(doc_id)
    await store.delete_document('never-existed')

    assert await store.get_document(doc_id) is None


@pytest.mark.asyncio
async def test_query_orders_filters_and_limits(store, seed_posts):
    await seed_posts(store, [1, 3, 5], category=Category.REACT)
    await seed_posts(store, [2, 4], category=Category.FIREBASE)

    everything = await store.run_query(QUERY)
    assert [d.data['created_at'] for d in everything] == [at(5), at(4), at(3), at(2), at(1)]

    filtered = await store.run_query(DocumentQuery(order_by='created_at', equals=('category', 'firebase'), limit=1))
    assert [d.data['created_at'] for d in filtered] == [at(4)]

    ascending = await store.run_query(DocumentQuery(order_by='created_at', descending=False, limit=2))
    assert [d.data['created_at'] for d in ascending] == [at(1), at(2)]


@pytest.mark.asyncio
async def test_start_after_is_exclusive_and_breaks_ties_by_id():
    ids = iter(['a', 'b', 'c', 'd'])
    store = InMemoryDocumentStore(id_factory=lambda: next(ids))
    for _ in range(4):
        await store.add_document(make_post_data(1))

    first = await store.run_query(DocumentQuery(order_by='created_at', limit=2))
    assert [d.id for d in first] == ['d', 'c']

    rest = await store.run_query(DocumentQuery(order_by='created_at', start_after=first[-1]))
    assert [d.id for d in rest] == ['b', 'a']


@pytest.mark.asyncio
async def test_watch_delivers_initial_snapshot_and_only_window_changes(store, seed_posts):
    await seed_posts(store, [1, 2])
    snapshots = []
    handle = store.watch(DocumentQuery(order_by='created_at', limit=2), snapshots.append, lambda e: None)

    assert [[d.data['created_at'] for d in s] for s in snapshots] == [[at(2), at(1)]]

    # 창(window) 밖의 오래된 글은 스냅샷을 만들지 않음
    await seed_posts(store, [0])
    assert len(snapshots) == 1

    await seed_posts(store, [3])
    assert [d.data['created_at'] for d in snapshots[-1]] == [at(3), at(2)]
    assert len(snapshots) == 2

    handle.close()
    handle.close()
    await seed_posts(store, [4])
    assert len(snapshots) == 2
    assert store.active_watch_count == 0


@pytest.mark.asyncio
async def test_break_watches_reports_error_and_stops_delivery(store, seed_posts):
    snapshots, errors = [], []
    store.watch(QUERY, snapshots.append, errors.append)
    failure = ConnectionError("stream reset")

    store.break_watches(failure)
    await seed_posts(store, [1])

    assert errors == [failure]
    assert len(snapshots) == 1
    assert store.active_watch_count == 0


@pytest.mark.asyncio
async def test_callback_error_does_not_fail_the_writer(store, seed_posts):
    def broken_callback(documents):
        if documents:
            raise RuntimeError("subscriber bug")

    store.watch(QUERY, broken_callback, lambda e: None)
    ids = await seed_posts(store, [1])

    assert await store.get_document(ids[0]) is not None


@pytest.mark.asyncio
async def test_load_seed_parses_timestamps(tmp_path, store):
    seed_file = tmp_path / 'posts.json'
    seed_file.write_text(json.dumps([
        {'id': 'seed-1', 'title': '첫 글', 'category': 'react', 'created_at': '2024-01-01T00:00:00Z'},
        {'title': '두 번째 글', 'category': 'etc', 'created_at': '2024-01-02T00:00:00+09:00'},
    ]), encoding='utf-8')

    assert store.load_seed(str(seed_file)) == 2

    document = await store.get_document('seed-1')
    assert document.data['created_at'] == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert len(await store.run_query(QUERY)) == 2


def test_concurrent_writers_leave_every_watch_on_latest_window():
    store = InMemoryDocumentStore()
    writer_a_blocked = threading.Event()
    release_a = threading.Event()
    first_sizes, second_sizes = [], []

    def first_watch(documents):
        first_sizes.append(len(documents))
        # 작성자 A의 전달을 붙잡아 두는 동안 작성자 B가 커밋
        if threading.current_thread().name == 'writer-a' and not writer_a_blocked.is_set():
            writer_a_blocked.set()
            release_a.wait(timeout=5)

    store.watch(QUERY, first_watch, lambda e: None)
    store.watch(QUERY, lambda documents: second_sizes.append(len(documents)), lambda e: None)

    def write(minutes):
        asyncio.run(store.add_document(make_post_data(minutes)))

    writer_a = threading.Thread(target=write, args=(1,), name='writer-a')
    writer_b = threading.Thread(target=write, args=(2,), name='writer-b')
    writer_a.start()
    assert writer_a_blocked.wait(timeout=5)

    writer_b.start()
    deadline = time.monotonic() + 5
    while len(asyncio.run(store.run_query(QUERY))) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    time.sleep(0.05)
    release_a.set()
    writer_a.join(timeout=5)
    writer_b.join(timeout=5)

    assert first_sizes[-1] == 2
    assert second_sizes[-1] == 2
    assert second_sizes == sorted(second_sizes)


@pytest.mark.asyncio
async def test_documents_without_order_field_are_excluded(store, seed_posts):
    await seed_posts(store, [1, 2])
    untimed = make_post_data(3)
    del untimed['created_at']
    await store.add_document(untimed)
    null_id = await store.add_document(make_post_data(4, created_at=None))

    documents = await store.run_query(QUERY)

    assert [d.data['created_at'] for d in documents] == [at(2), at(1), None]
    rest = await store.run_query(DocumentQuery(order_by='created_at', start_after=documents[0]))
    assert [d.id for d in rest][-1] == null_id


@pytest.mark.asyncio
async def test_seed_without_timestamp_does_not_break_queries(tmp_path, store):
    seed_file = tmp_path / 'posts.json'
    seed_file.write_text(json.dumps([
        {'id': 'dated', 'title': '날짜 있음', 'category': 'react', 'created_at': '2024-01-01T00:00:00Z'},
        {'id': 'undated', 'title': '날짜 없음', 'category': 'react'},
    ]), encoding='utf-8')
    store.load_seed(str(seed_file))

    assert [d.id for d in await store.run_query(QUERY)] == ['dated']
