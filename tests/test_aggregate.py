import threading
import time

import main
from models import DetailFetchFailed, Story


def test_empty_ids_resolve_immediately():
    calls = []
    assert main.aggregate([], calls.append) == []
    assert calls == []


def test_partial_failure_scenario():
    records = {1: {"title": "A", "time": 100}, 3: {"title": "C", "time": 200}}

    def fetch_one(story_id):
        if story_id not in records:
            raise DetailFetchFailed(story_id, "gone")
        return Story.from_record(records[story_id])

    stories = main.aggregate([1, 2, 3], fetch_one)
    assert [(s.title, int(s.time.timestamp())) for s in stories] == [("C", 200), ("A", 100)]


def test_out_of_order_completion_resolves_once_after_all():
    finished = []
    lock = threading.Lock()
    third_done = threading.Event()

    def fetch_one(story_id):
        try:
            if story_id == 1:
                # finish last
                third_done.wait(timeout=5)
                time.sleep(0.05)
                return Story.from_record({"title": "first", "time": 50})
            if story_id == 2:
                raise RuntimeError("boom")
            return Story.from_record({"title": "third", "time": 60})
        finally:
            with lock:
                finished.append(story_id)
            if story_id == 3:
                third_done.set()

    stories = main.aggregate([1, 2, 3], fetch_one, max_workers=3)
    assert sorted(finished) == [1, 2, 3]
    assert finished[-1] == 1
    assert [s.title for s in stories] == ["third", "first"]


def test_equal_times_keep_request_order():
    def fetch_one(story_id):
        # later ids finish first
        time.sleep(0.01 * (5 - story_id))
        return Story.from_record({"title": str(story_id), "time": 100 if story_id != 3 else 500})

    stories = main.aggregate([1, 2, 3, 4], fetch_one, max_workers=4)
    assert [s.title for s in stories] == ["3", "1", "2", "4"]


def test_result_sorted_and_bounded():
    times = {1: 10, 2: 30, 3: 20, 4: 30, 5: 5}

    def fetch_one(story_id):
        if story_id == 5:
            raise DetailFetchFailed(story_id, "x")
        return Story.from_record({"title": str(story_id), "time": times[story_id]})

    stories = main.aggregate(list(times), fetch_one, max_workers=2)
    assert len(stories) == 4
    stamps = [s.time for s in stories]
    assert stamps == sorted(stamps, reverse=True)
    assert [s.title for s in stories] == ["2", "4", "3", "1"]
