import threading

from coderepo_rag.common.schemas import CodeChunk
from coderepo_rag.retrieval.lexical_store import LexicalIndexStore, keyword_score

REPO = "https://github.com/acme/shop"
OTHER = "https://github.com/acme/blog"


def _chunk(content: str, repository_url: str = REPO, idx: int = 0, path: str = "A.java") -> CodeChunk:
    return CodeChunk(content=content, file_path=path, repository_url=repository_url, chunk_index=idx)


def test_keyword_score_averages_substring_counts():
    """
    The score is the summed substring count of each query word divided by the
    number of query words.
    """
    assert keyword_score({"login"}, "login() calls doLogin()") == 2.0
    assert keyword_score({"login", "user"}, "login user user") == 1.5
    assert keyword_score(set(), "anything") == 0.0


def test_search_ranks_matching_chunk_and_excludes_zero_scores():
    """
    Querying "login" ranks the chunk that mentions it first with a positive
    score and leaves out the unrelated chunk entirely.
    """
    store = LexicalIndexStore()
    store.add([
        _chunk("class Foo { login() {} }", idx=0),
        _chunk("totally unrelated text", idx=1),
    ])

    hits = store.search("login")

    assert len(hits) == 1
    assert hits[0].chunk.content == "class Foo { login() {} }"
    assert hits[0].score > 0


def test_search_orders_by_score_then_insertion_order():
    """
    Higher scores come first; equal scores keep insertion order.
    """
    store = LexicalIndexStore()
    store.add([
        _chunk("token", idx=0),
        _chunk("token token token", idx=1),
        _chunk("token again", idx=2),
    ])

    hits = store.search("TOKEN", max_results=10)

    assert [h.chunk.chunk_index for h in hits] == [1, 0, 2]


def test_search_respects_scope_and_limit():
    """
    Scoped searches only see the given repository and results are capped.
    """
    store = LexicalIndexStore()
    store.add([_chunk(f"cart item {i}", idx=i) for i in range(5)])
    store.add([_chunk("cart post", repository_url=OTHER)])

    scoped = store.search("cart", repository_url=OTHER)
    capped = store.search("cart", max_results=2)

    assert [h.chunk.repository_url for h in scoped] == [OTHER]
    assert len(capped) == 2


def test_search_blank_query_or_empty_index_returns_empty():
    """
    Blank queries, non-positive limits and empty indexes give no results.
    """
    store = LexicalIndexStore()
    assert store.search("login") == []

    store.add([_chunk("login")])
    assert store.search("   ") == []
    assert store.search("login", max_results=0) == []


def test_delete_by_repository_is_scoped_and_idempotent():
    """
    Deleting a repository removes only its chunks and may be repeated.
    """
    store = LexicalIndexStore()
    store.add([_chunk("alpha"), _chunk("alpha", repository_url=OTHER)])

    store.delete_by_repository(REPO)
    store.delete_by_repository(REPO)

    assert store.repositories() == [OTHER]
    assert store.count() == 1
    assert store.count(REPO) == 0
    assert store.get_chunks(REPO) == ()
    assert store.search("alpha")[0].chunk.repository_url == OTHER


def test_add_appends_within_repository():
    """
    Successive adds for one repository accumulate in insertion order.
    """
    store = LexicalIndexStore()
    store.add([_chunk("one", idx=0)])
    store.add([_chunk("two", idx=1)])
    store.add([])

    assert [c.content for c in store.get_chunks(REPO)] == ["one", "two"]


def test_concurrent_readers_never_see_partial_batches():
    """
    A reader racing with writers sees either none or all of a batch.
    """
    store = LexicalIndexStore()
    batch = [_chunk("needle", idx=i) for i in range(50)]
    observed: list[int] = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            observed.append(len(store.search("needle", max_results=1000)))

    t = threading.Thread(target=reader)
    t.start()
    for _ in range(20):
        store.add(batch)
        store.delete_by_repository(REPO)
    stop.set()
    t.join()

    assert set(observed) <= {0, 50}
