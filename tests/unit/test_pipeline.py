"""Unit tests for the search pipeline orchestration."""
import asyncio
import threading

import pytest

from docsearch.errors import (
    ConsistencyFault,
    EmbeddingFailure,
    ExtractionFailure,
    ModelLoadFailure,
)
from docsearch.rag import pipeline as pipeline_module
from docsearch.rag.chunker import Passage
from docsearch.rag.embedder import Embedder
from docsearch.rag.pipeline import PipelineState, SearchPipeline


QUERY = "first letters"

VECTORS = {
    "alpha beta": [1.0, 0.0, 0.0],
    "gamma delta": [0.0, 1.0, 0.0],
    QUERY: [0.9, 0.1, 0.0],
}


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, query, results, passages):
        self.calls.append((query, list(results), list(passages)))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def make_pipeline(stub_embedder_cls, text_document, renderer):
    def _make(embedder=None, **kwargs):
        kwargs.setdefault("document_path", text_document)
        kwargs.setdefault("chunk_size", 12)
        kwargs.setdefault("top_k", 2)
        kwargs.setdefault("renderer", renderer)
        return SearchPipeline(embedder=embedder or stub_embedder_cls(VECTORS), **kwargs)

    return _make


def test_run_ranks_and_presents(make_pipeline, renderer):
    pipeline = make_pipeline()

    results = asyncio.run(pipeline.run(QUERY))

    assert [r.passage_index for r in results] == [0, 1]
    assert results[0].similarity >= results[1].similarity
    assert pipeline.state is PipelineState.DONE
    assert pipeline.passages == [
        Passage(index=0, text="alpha beta"),
        Passage(index=1, text="gamma delta"),
    ]

    (query, rendered, passages), = renderer.calls
    assert query == QUERY
    assert rendered == results
    assert passages == pipeline.passages


def test_embeds_each_passage_then_query(make_pipeline, stub_embedder_cls):
    embedder = stub_embedder_cls(VECTORS)

    asyncio.run(make_pipeline(embedder=embedder).run(QUERY))

    assert embedder.calls == ["alpha beta", "gamma delta", QUERY]
    assert embedder.closed


def test_top_k_limits_results(make_pipeline):
    results = asyncio.run(make_pipeline(top_k=1).run(QUERY))

    assert len(results) == 1
    assert results[0].passage_index == 0


def test_empty_document_presents_nothing_to_rank(make_pipeline, renderer, tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("   ", encoding="utf-8")

    results = asyncio.run(make_pipeline(document_path=empty).run(QUERY))

    assert results == []
    assert renderer.calls == [(QUERY, [], [])]


def test_model_load_failure_stops_before_extraction(make_pipeline, stub_embedder_cls, renderer):
    extracted = []

    def extractor(path):
        extracted.append(path)
        return "alpha beta"

    pipeline = make_pipeline(
        embedder=stub_embedder_cls(VECTORS, fail_load=True),
        extractor=extractor,
    )

    with pytest.raises(ModelLoadFailure):
        asyncio.run(pipeline.run(QUERY))

    assert extracted == []
    assert pipeline.passages == []
    assert renderer.calls == []
    assert pipeline.state is PipelineState.FAILED


def test_extraction_failure(make_pipeline, stub_embedder_cls, renderer, tmp_path):
    embedder = stub_embedder_cls(VECTORS)
    pipeline = make_pipeline(embedder=embedder, document_path=tmp_path / "missing.pdf")

    with pytest.raises(ExtractionFailure):
        asyncio.run(pipeline.run(QUERY))

    assert embedder.calls == []
    assert embedder.closed
    assert renderer.calls == []
    assert pipeline.state is PipelineState.FAILED


def test_unexpected_extractor_error_is_wrapped(make_pipeline):
    def extractor(path):
        raise OSError("disk on fire")

    pipeline = make_pipeline(extractor=extractor)

    with pytest.raises(ExtractionFailure, match="disk on fire") as exc_info:
        asyncio.run(pipeline.run(QUERY))

    assert exc_info.value.stage == "extracting"
    assert isinstance(exc_info.value.__cause__, OSError)


def test_passage_embedding_failure(make_pipeline, stub_embedder_cls, renderer):
    pipeline = make_pipeline(embedder=stub_embedder_cls(VECTORS, fail_on="gamma delta"))

    with pytest.raises(EmbeddingFailure) as exc_info:
        asyncio.run(pipeline.run(QUERY))

    assert exc_info.value.passage_index == 1
    assert renderer.calls == []
    assert pipeline.state is PipelineState.FAILED


def test_query_embedding_failure(make_pipeline, stub_embedder_cls, renderer):
    pipeline = make_pipeline(embedder=stub_embedder_cls(VECTORS, fail_on=QUERY))

    with pytest.raises(EmbeddingFailure) as exc_info:
        asyncio.run(pipeline.run(QUERY))

    assert exc_info.value.is_query
    assert renderer.calls == []


def test_missing_embedding_is_consistency_fault(make_pipeline, renderer, monkeypatch):
    real_embed_passages = pipeline_module.embed_passages

    async def drop_last(embedder, passages, concurrency=None):
        embeddings = await real_embed_passages(embedder, passages, concurrency=concurrency)
        return embeddings[:-1]

    monkeypatch.setattr(pipeline_module, "embed_passages", drop_last)
    pipeline = make_pipeline()

    with pytest.raises(ConsistencyFault, match="count mismatch"):
        asyncio.run(pipeline.run(QUERY))

    assert renderer.calls == []
    assert pipeline.state is PipelineState.FAILED


def test_pipeline_runs_once(make_pipeline):
    pipeline = make_pipeline()
    asyncio.run(pipeline.run(QUERY))

    with pytest.raises(RuntimeError, match="already ran"):
        asyncio.run(pipeline.run(QUERY))


def test_concurrent_embedding_keeps_ranking(make_pipeline):
    sequential = asyncio.run(make_pipeline(embed_concurrency=1).run(QUERY))
    concurrent = asyncio.run(make_pipeline(embed_concurrency=4).run(QUERY))

    assert sequential == concurrent


def test_hash_embedder_finds_identical_passage(hash_embedder, tmp_path, renderer):
    document = tmp_path / "guide.txt"
    document.write_text(
        "requirements elicitation interviews "
        "software testing strategies "
        "configuration management baselines",
        encoding="utf-8",
    )
    pipeline = SearchPipeline(
        embedder=hash_embedder,
        document_path=document,
        chunk_size=36,
        top_k=3,
        renderer=renderer,
    )

    results = asyncio.run(pipeline.run("software testing strategies"))

    assert pipeline.passages[1].text == "software testing strategies"
    assert results[0].passage_index == 1
    assert results[0].similarity == pytest.approx(1.0)


class SlowStubEmbedder(Embedder):
    """Fails on one text and takes a while on the others."""

    name = "slow-stub"

    def __init__(self, fail_on, delay=0.05):
        super().__init__()
        self.fail_on = fail_on
        self.delay = delay
        self.closed = False
        self.finished_after_close = []

    async def _load(self):
        return 2

    async def _embed(self, text):
        if text == self.fail_on:
            raise ValueError("malformed input")
        await asyncio.sleep(self.delay)
        if self.closed:
            self.finished_after_close.append(text)
        return [1.0, 0.0]

    async def close(self):
        self.closed = True


def test_concurrent_failure_cancels_remaining_embeddings(tmp_path, renderer):
    document = tmp_path / "words.txt"
    document.write_text("w0 w1 w2 w3 w4 w5", encoding="utf-8")
    embedder = SlowStubEmbedder(fail_on="w0")
    pipeline = SearchPipeline(
        embedder=embedder,
        document_path=document,
        chunk_size=2,
        top_k=3,
        renderer=renderer,
        embed_concurrency=4,
    )

    async def scenario():
        with pytest.raises(EmbeddingFailure) as exc_info:
            await pipeline.run("q")
        # give any leftover embedding calls time to finish
        await asyncio.sleep(0.3)
        return exc_info.value

    error = asyncio.run(scenario())

    assert error.passage_index == 0
    assert embedder.closed
    assert embedder.finished_after_close == []
    assert renderer.calls == []


def test_non_numeric_vector_names_the_passage(make_pipeline, stub_embedder_cls, renderer):
    vectors = dict(VECTORS, **{"gamma delta": [None, 1.0, 0.0]})
    pipeline = make_pipeline(embedder=stub_embedder_cls(vectors))

    with pytest.raises(EmbeddingFailure, match="non-numeric") as exc_info:
        asyncio.run(pipeline.run(QUERY))

    assert exc_info.value.passage_index == 1
    assert exc_info.value.target == "passage 1"
    assert renderer.calls == []


def test_extractor_runs_off_the_event_loop_thread(make_pipeline):
    threads = []

    def extractor(path):
        threads.append(threading.get_ident())
        return "alpha beta"

    asyncio.run(make_pipeline(extractor=extractor).run(QUERY))

    assert threads and threads[0] != threading.get_ident()
