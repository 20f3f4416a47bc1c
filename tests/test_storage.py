import io

import requests
import pytest

from get621.api import E621Post, ReverseSearchCandidate
from get621.errors import (FileSystemError, HttpError, MissingFileUrlError,
                           NetworkError)
from get621.storage import (AssetRepository, ItemFailure, SaveResult,
                            SaveStatus, candidate_urls,
                            download, expand_paths, post_filename,
                            static_url)

from conftest import FakeResponse, deleted_record, make_post


def file_url(post_id: int) -> str:
    return f"https://static1.e621.net/data/{post_id}.png"


def test_pool_file_names():
    posts = [make_post(x) for x in (10, 20, 30)]

    assert [post_filename(p, 42, i) for i, p in enumerate(posts, 1)] == \
        ["42-1_10.png", "42-2_20.png", "42-3_30.png"]
    assert [post_filename(p) for p in posts] == \
        ["10.png", "20.png", "30.png"]


def test_file_name_needs_a_file():
    with pytest.raises(MissingFileUrlError):
        post_filename(E621Post.fromJson(deleted_record(1)))


def test_download_counts_bytes(session):
    session.routes["https://x/a"] = FakeResponse(chunks=(b"abc", b"de"))
    sink = io.BytesIO()

    assert download(session, "https://x/a", sink) == 5
    assert sink.getvalue() == b"abcde"
    _, _, kwargs = session.calls[0]
    assert kwargs["stream"] is True


def test_download_http_error_skips_body(session):
    res = FakeResponse(503, chunks=(b"oops",))
    session.routes["https://x/a"] = res
    sink = io.BytesIO()

    with pytest.raises(HttpError) as info:
        download(session, "https://x/a", sink)

    assert info.value.code == 503
    assert not res.body_read
    assert res.closed
    assert sink.getvalue() == b""


def test_download_broken_transfer(session):
    session.routes["https://x/a"] = FakeResponse(chunks=(b"ab",),
                                                 broken=True)

    with pytest.raises(NetworkError):
        download(session, "https://x/a", io.BytesIO())


def test_download_sink_failure(session):
    class BrokenSink(io.BytesIO):
        def write(self, data):
            raise BrokenPipeError("closed")

    session.routes["https://x/a"] = FakeResponse(chunks=(b"ab",))

    with pytest.raises(FileSystemError):
        download(session, "https://x/a", BrokenSink())


def test_save_isolates_failures(tmp_path, config, session):
    posts = [make_post(x) for x in (1, 2, 3)]
    session.routes[file_url(1)] = FakeResponse(chunks=(b"one",))
    session.routes[file_url(2)] = requests.ConnectionError("reset")
    session.routes[file_url(3)] = FakeResponse(chunks=(b"three",))
    repo = AssetRepository(tmp_path, config=config, session=session)

    results = repo.save_posts(posts)

    assert [r.status for r in results] == [SaveStatus.SAVED,
                                           SaveStatus.FAILED,
                                           SaveStatus.SAVED]
    assert isinstance(results[1].error, NetworkError)
    assert (tmp_path / "1.png").read_bytes() == b"one"
    assert (tmp_path / "3.png").read_bytes() == b"three"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["1.png", "3.png"]
    assert repo.stats.failed == 1
    assert repo.stats.saved == 2


def test_save_pool_names(tmp_path, config, session):
    posts = [make_post(x) for x in (10, 20, 30)]
    for x in (10, 20, 30):
        session.routes[file_url(x)] = FakeResponse(chunks=(b"x",))
    repo = AssetRepository(tmp_path, config=config, session=session)

    results = repo.save_posts(posts, pool_id=42)

    assert [r.path.name for r in results] == \
        ["42-1_10.png", "42-2_20.png", "42-3_30.png"]


def test_repeated_post_is_saved_once(tmp_path, config, session):
    posts = [make_post(1), make_post(2), make_post(1)]
    for x in (1, 2):
        session.routes[file_url(x)] = FakeResponse(chunks=(b"a", b"b"))
    repo = AssetRepository(tmp_path, config=config, session=session)

    results = repo.save_posts(posts, pool_id=42)

    assert [r.status for r in results] == [SaveStatus.SAVED,
                                           SaveStatus.SAVED,
                                           SaveStatus.SKIPPED]
    assert results[0].path == tmp_path / "42-1_1.png"
    assert sorted(session.urls()) == [file_url(1), file_url(2)]
    assert sorted(p.name for p in tmp_path.iterdir()) == \
        ["42-1_1.png", "42-2_2.png"]
    assert repo.stats.failed == 0


def test_deleted_posts_are_not_saved(tmp_path, config, session):
    posts = [make_post(1), E621Post.fromJson(deleted_record(2))]
    session.routes[file_url(1)] = FakeResponse(chunks=(b"x",))
    repo = AssetRepository(tmp_path, config=config, session=session)

    results = repo.save_posts(posts)

    assert [r.status for r in results] == [SaveStatus.SAVED,
                                           SaveStatus.SKIPPED]
    assert session.urls() == [file_url(1)]
    assert repo.stats.skipped == 1


def test_active_post_without_file_fails(tmp_path, config, session):
    record = deleted_record(5)
    record["flags"]["deleted"] = False
    repo = AssetRepository(tmp_path, config=config, session=session)

    [result] = repo.save_posts([E621Post.fromJson(record)])

    assert result.status is SaveStatus.FAILED
    assert isinstance(result.error, MissingFileUrlError)


def test_candidate_with_url():
    candidate = ReverseSearchCandidate(
            id=1, score=99.0, file_url="https://s/data/ab/cd/abcd.webm")

    assert candidate_urls(candidate) == [("https://s/data/ab/cd/abcd.webm",
                                          "webm")]


def test_candidate_guesses_extensions():
    candidate = ReverseSearchCandidate(id=1, score=99.0, md5="abcdef")

    assert [ext for _, ext in candidate_urls(candidate)] == \
        ["jpg", "png", "gif", "webm", "swf"]
    assert candidate_urls(candidate)[0][0] == static_url("abcdef", "jpg")
    assert static_url("abcdef", "jpg") == \
        "https://static1.e621.net/data/ab/cd/abcdef.jpg"


def test_candidate_without_anything():
    with pytest.raises(MissingFileUrlError):
        candidate_urls(ReverseSearchCandidate(id=1, score=99.0))


def test_save_candidate_stops_at_first_hit(tmp_path, config, session):
    session.routes[static_url("abcdef", "png")] = \
        FakeResponse(chunks=(b"png",))
    session.routes[static_url("abcdef", "gif")] = \
        FakeResponse(chunks=(b"gif",))
    repo = AssetRepository(tmp_path, config=config, session=session)

    path = repo.save_candidate(
            ReverseSearchCandidate(id=7, score=95.0, md5="abcdef"))

    assert path == tmp_path / "7.png"
    assert path.read_bytes() == b"png"
    assert session.urls() == [static_url("abcdef", "jpg"),
                              static_url("abcdef", "png")]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["7.png"]


def test_save_candidates_reports_misses(tmp_path, config, session):
    repo = AssetRepository(tmp_path, config=config, session=session)

    results = repo.save_candidates([
        ReverseSearchCandidate(id=7, score=95.0, md5="abcdef")])

    assert results[0].status is SaveStatus.FAILED
    assert isinstance(results[0].error, HttpError)


def test_expand_paths(tmp_path):
    (tmp_path / "a.png").write_bytes(b"")
    (tmp_path / "b.jpg").write_bytes(b"")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.gif").write_bytes(b"")

    assert [p.name for p in expand_paths([str(tmp_path / "*.png")])] == \
        ["a.png"]
    assert [p.name for p in expand_paths([str(tmp_path / "sub")])] == \
        ["c.gif"]
    assert expand_paths([str(tmp_path / "nothing*")]) == []


def test_failure_needs_an_error():
    with pytest.raises(ValueError):
        ItemFailure.fromResult(SaveResult(1, SaveStatus.SAVED))

    failure = ItemFailure.fromResult(
            SaveResult(1, SaveStatus.FAILED, error=HttpError(404)))
    assert failure.post_id == 1
