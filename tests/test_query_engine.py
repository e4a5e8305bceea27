"""Tests for hit grouping and QueryEngine."""

from __future__ import annotations

import pytest
from conftest import hash_vector, make_processed

from seen.exceptions import RequestError, TransientServiceError
from seen.search import _engine
from seen.search._engine import QueryEngine, group_hits
from seen.search.types import Backend, VectorEntry, VectorMatch


def _m(vid: str, score: float) -> VectorMatch:
    return VectorMatch(id=vid, score=score)


# ==================================================================
# group_hits
# ==================================================================


class TestGroupHits:
    def test_documents_ranked_by_best_chunk(self):
        groups = group_hits([_m("d1-0", 0.9), _m("d1-1", 0.4), _m("d2-0", 0.85)])
        assert [g.document_id for g in groups] == ["d1", "d2"]
        assert groups[0].score == pytest.approx(0.9)
        assert [c.chunk_index for c in groups[0].chunks] == [0, 1]

    def test_unsorted_input_is_ranked(self):
        groups = group_hits([_m("d2-0", 0.3), _m("d1-4", 0.7), _m("d2-1", 0.8)])
        assert [g.document_id for g in groups] == ["d2", "d1"]
        assert [c.chunk_index for c in groups[0].chunks] == [1, 0]

    def test_truncates_to_max_documents(self):
        matches = [_m(f"doc{i}-0", 1.0 - i * 0.1) for i in range(7)]
        groups = group_hits(matches)
        assert len(groups) == 5
        assert [g.document_id for g in groups] == [f"doc{i}" for i in range(5)]

    def test_custom_max_documents(self):
        matches = [_m(f"doc{i}-0", 1.0 - i * 0.1) for i in range(7)]
        assert len(group_hits(matches, max_documents=2)) == 2

    def test_ties_keep_first_seen_order(self):
        groups = group_hits([_m("b-0", 0.5), _m("a-0", 0.5), _m("c-0", 0.5)])
        assert [g.document_id for g in groups] == ["b", "a", "c"]

    def test_uuid_document_ids_split_on_last_hyphen(self):
        doc = "3f2b8c1e-0d4a-4c3b-9a51-7e0f6d2c9b11"
        groups = group_hits([_m(f"{doc}-12", 0.6)])
        assert groups[0].document_id == doc
        assert groups[0].chunks[0].chunk_index == 12

    def test_malformed_ids_skipped(self):
        groups = group_hits([_m("garbage", 0.99), _m("d1-x", 0.95), _m("d1-0", 0.5)])
        assert [g.document_id for g in groups] == ["d1"]

    def test_empty(self):
        assert group_hits([]) == []


# ==================================================================
# QueryEngine
# ==================================================================


class TestQueryEngineRemote:
    @pytest.mark.asyncio
    async def test_finds_ingested_document(self, coordinator, query_engine):
        report = await coordinator.insert_document(
            "https://example.com/a", b"<html>a</html>", "text/html", make_processed("alpha", 3)
        )
        await coordinator.insert_document(
            "https://example.com/b", b"<html>b</html>", "text/html", make_processed("beta", 2)
        )

        hits = await query_engine.search("alpha chunk 2")
        assert hits[0].document.id == report.document.id
        assert hits[0].document.url == "https://example.com/a"
        assert hits[0].chunks[0].chunk_index == 2
        assert hits[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_one_hit_per_document(self, coordinator, query_engine):
        for name in ["alpha", "beta", "gamma"]:
            await coordinator.insert_document(
                f"https://example.com/{name}", b"x", "text/plain", make_processed(name, 4)
            )
        hits = await query_engine.search("beta chunk 0")
        ids = [h.document.id for h in hits]
        assert len(ids) == len(set(ids)) == 3

    @pytest.mark.asyncio
    async def test_top_k_passed_to_backend(self, remote, query_engine, monkeypatch):
        seen_k: list[int] = []
        original = remote.query

        async def spy(vector, *, top_k=20, include_metadata=True):
            seen_k.append(top_k)
            return await original(vector, top_k=top_k, include_metadata=include_metadata)

        monkeypatch.setattr(remote, "query", spy)
        await query_engine.search("q")
        await query_engine.search("q", top_k=7)
        assert seen_k == [20, 7]

    @pytest.mark.asyncio
    async def test_empty_result_skips_grouping_and_lookups(
        self, query_engine, repository, monkeypatch
    ):
        def fail_group(*args, **kwargs):
            raise AssertionError("grouping should not run")

        async def fail_get(document_id):
            raise AssertionError("lookup should not run")

        monkeypatch.setattr(_engine, "group_hits", fail_group)
        monkeypatch.setattr(repository, "get", fail_get)
        assert await query_engine.search("nothing indexed") == []

    @pytest.mark.asyncio
    async def test_missing_document_dropped(self, coordinator, remote, query_engine):
        report = await coordinator.insert_document(
            "https://example.com/a", b"a", "text/plain", make_processed("alpha", 1)
        )
        # Orphan vector whose document row does not exist
        await remote.insert([VectorEntry(id="ghost-0", vector=hash_vector("q"))])

        hits = await query_engine.search("q")
        assert [h.document.id for h in hits] == [report.document.id]

    @pytest.mark.asyncio
    async def test_lookup_error_drops_only_that_document(
        self, coordinator, query_engine, repository, monkeypatch
    ):
        good = await coordinator.insert_document(
            "https://example.com/good", b"g", "text/plain", make_processed("good", 1)
        )
        bad = await coordinator.insert_document(
            "https://example.com/bad", b"b", "text/plain", make_processed("bad", 1)
        )
        original = repository.get

        async def flaky_get(document_id):
            if document_id == bad.document.id:
                raise RequestError("database unavailable")
            return await original(document_id)

        monkeypatch.setattr(repository, "get", flaky_get)
        hits = await query_engine.search("bad chunk 0")
        assert [h.document.id for h in hits] == [good.document.id]

    @pytest.mark.asyncio
    async def test_remote_failure_propagates(self, remote, query_engine):
        remote.fail_on.add("query")
        with pytest.raises(RequestError):
            await query_engine.search("q")

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, provider, query_engine):
        provider.fail = True
        with pytest.raises(TransientServiceError):
            await query_engine.search("q")


class TestQueryEngineLocal:
    @pytest.mark.asyncio
    async def test_local_backend_reads_snapshot(self, coordinator, remote, query_engine):
        report = await coordinator.insert_document(
            "https://example.com/a", b"a", "text/plain", make_processed("alpha", 3)
        )
        remote.fail_on.add("query")

        hits = await query_engine.search("alpha chunk 1", backend=Backend.LOCAL)
        assert hits[0].document.id == report.document.id
        assert hits[0].chunks[0].chunk_index == 1

    @pytest.mark.asyncio
    async def test_empty_local_index(self, query_engine):
        assert await query_engine.search("q", backend=Backend.LOCAL) == []

    @pytest.mark.asyncio
    async def test_max_documents_setting(
        self, coordinator, provider, repository, remote, snapshots
    ):
        engine = QueryEngine(
            provider, repository, remote=remote, snapshots=snapshots, max_documents=2
        )
        for i in range(4):
            await coordinator.insert_document(
                f"https://example.com/{i}", b"x", "text/plain", make_processed(f"doc{i}", 1)
            )
        assert len(await engine.search("doc0 chunk 0", backend=Backend.LOCAL)) == 2
