"""Tests for the single-sampler lock."""

import os

from cpu1sec.lock import ExclusivityController


def test_acquire_and_release(tmp_path):
    lock = ExclusivityController(tmp_path / "cpu1sec.pid")
    assert lock.try_acquire() is True
    assert lock.owns_lock
    assert (tmp_path / "cpu1sec.pid").read_text().strip() == str(os.getpid())
    lock.release()
    assert not lock.owns_lock


def test_second_controller_is_refused(tmp_path):
    path = tmp_path / "cpu1sec.pid"
    first = ExclusivityController(path)
    second = ExclusivityController(path)
    assert first.try_acquire()
    assert second.try_acquire() is False
    first.release()
    assert second.try_acquire() is True
    second.release()


def test_only_one_of_many_holds_the_lock(tmp_path):
    path = tmp_path / "cpu1sec.pid"
    controllers = [ExclusivityController(path) for _ in range(5)]
    results = [c.try_acquire() for c in controllers]
    assert results.count(True) == 1
    for c in controllers:
        c.release()


def test_is_held_probe(tmp_path):
    path = tmp_path / "cpu1sec.pid"
    sampler = ExclusivityController(path)
    reader = ExclusivityController(path)
    assert reader.is_held() is False
    assert sampler.try_acquire()
    assert reader.is_held() is True
    # probing must not take over or rewrite the marker
    assert not reader.owns_lock
    assert path.read_text().strip() == str(os.getpid())
    sampler.release()
    assert reader.is_held() is False


def test_probe_does_not_rewrite_marker(tmp_path):
    path = tmp_path / "cpu1sec.pid"
    path.write_text("12345\n")
    ExclusivityController(path).is_held()
    assert path.read_text() == "12345\n"


def test_context_manager_releases(tmp_path):
    path = tmp_path / "cpu1sec.pid"
    with ExclusivityController(path) as lock:
        assert lock.try_acquire()
    assert ExclusivityController(path).try_acquire()


def test_creates_state_dir(tmp_path):
    lock = ExclusivityController(tmp_path / "state" / "cpu1sec.pid")
    assert lock.try_acquire()
    lock.release()
