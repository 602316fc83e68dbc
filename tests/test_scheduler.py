"""Tests for the per-frame scheduler and frame sources."""

import asyncio
import logging
import threading

from vortex import AsyncioFrames, ManualFrames, Scheduler
from vortex.scheduler import affected, paths_overlap


def _scheduler():
    frames = ManualFrames()
    runs = []
    sched = Scheduler(lambda paths, force: runs.append((paths, force)), frames)
    return sched, frames, runs


class TestScheduler:
    def test_first_notification_requests_a_frame(self):
        sched, frames, runs = _scheduler()
        sched.notify("a")
        assert frames.pending == 1
        assert sched.scheduled
        assert runs == []

    def test_notifications_coalesce_into_one_flush(self):
        sched, frames, runs = _scheduler()
        sched.notify("a")
        sched.notify("b")
        sched.notify("a")
        assert frames.pending == 1
        frames.tick()
        assert runs == [(frozenset({"a", "b"}), False)]

    def test_pending_cleared_before_run(self):
        frames = ManualFrames()
        seen = []
        sched = None

        def run(paths, force):
            seen.append(sched.pending)

        sched = Scheduler(run, frames)
        sched.notify("a")
        frames.tick()
        assert seen == [frozenset()]

    def test_notification_during_flush_starts_new_batch(self):
        frames = ManualFrames()
        runs = []
        sched = None

        def run(paths, force):
            runs.append(paths)
            if paths == frozenset({"a"}):
                sched.notify("b")

        sched = Scheduler(run, frames)
        sched.notify("a")
        frames.tick()
        assert runs == [frozenset({"a"})]
        assert frames.pending == 1
        frames.tick()
        assert runs == [frozenset({"a"}), frozenset({"b"})]

    def test_forced_flush(self):
        sched, frames, runs = _scheduler()
        sched.flush(force=True)
        assert runs == [(frozenset(), True)]

    def test_reentrant_flush_ignored(self, caplog):
        frames = ManualFrames()
        runs = []
        sched = None

        def run(paths, force):
            runs.append(paths)
            sched.flush()

        sched = Scheduler(run, frames)
        with caplog.at_level(logging.WARNING, logger="vortex.scheduler"):
            sched.flush()
        assert len(runs) == 1
        assert "during a flush" in caplog.text

    def test_reset_drops_pending_and_stale_frame(self):
        sched, frames, runs = _scheduler()
        sched.notify("a")
        sched.reset()
        frames.tick()
        assert runs == []
        assert sched.pending == frozenset()


class TestOverlap:
    def test_prefix_either_way(self):
        assert paths_overlap("user", "user.name")
        assert paths_overlap("user.name", "user")
        assert paths_overlap("user.name", "user.name")

    def test_segment_boundaries(self):
        assert not paths_overlap("user", "username")
        assert not paths_overlap("a", "b")

    def test_root_path_overlaps_everything(self):
        assert paths_overlap("", "anything")

    def test_affected(self):
        assert affected(None, {"x"})
        assert not affected(frozenset(), {"x"})
        assert affected(frozenset({"items"}), {"items.0.done"})
        assert not affected(frozenset({"items"}), {"count"})


class TestFrames:
    def test_manual_tick_runs_only_queued_callbacks(self):
        frames = ManualFrames()
        log = []
        frames.request(lambda: (log.append(1), frames.request(lambda: log.append(2))))
        assert frames.tick() == 1
        assert log == [1]
        assert frames.tick() == 1
        assert log == [1, 2]

    def test_asyncio_frames(self):
        async def main():
            loop = asyncio.get_running_loop()
            done = loop.create_future()
            AsyncioFrames(interval=0).request(lambda: done.set_result(True))
            return await asyncio.wait_for(done, 1)

        assert asyncio.run(main()) is True

    def test_asyncio_frames_explicit_loop(self):
        loop = asyncio.new_event_loop()
        try:
            log = []
            AsyncioFrames(loop, interval=0).request(lambda: log.append("ran"))
            loop.run_until_complete(asyncio.sleep(0.01))
            assert log == ["ran"]
        finally:
            loop.close()

    def test_manual_dispatch_runs_inline(self):
        log = []
        ManualFrames().dispatch(lambda: log.append("ran"))
        assert log == ["ran"]

    def test_asyncio_dispatch_from_worker_thread(self):
        async def main():
            frames = AsyncioFrames(asyncio.get_running_loop())
            seen = []
            done = asyncio.Event()

            def record():
                seen.append(threading.get_ident())
                done.set()

            t = threading.Thread(target=frames.dispatch, args=(record,))
            t.start()
            t.join()
            await asyncio.wait_for(done.wait(), 1)
            return seen

        assert asyncio.run(main()) == [threading.get_ident()]
