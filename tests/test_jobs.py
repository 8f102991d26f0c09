"""Tests for the job table.

The job table is the shell's registry of in-flight child processes.
It hands out job ids from a watermark, allows at most one foreground
job, and must stay consistent when many tasks add and delete at once.
"""

import io
import threading

import pytest

from py_sh.jobs import ForegroundConflictError, Job, JobState, JobTable, JobTableError


def _three_jobs() -> JobTable:
    """Create a table holding jobs 0 (fg), 1 and 2 (bg)."""
    table = JobTable()
    table.add(pid=1, state=JobState.FOREGROUND, command_line="one")
    table.add(pid=2, state=JobState.BACKGROUND, command_line="two")
    table.add(pid=3, state=JobState.BACKGROUND, command_line="three")
    return table


class TestJobState:
    """Verify job state values."""

    def test_state_values(self) -> None:
        """States render as their display names."""
        assert JobState.FOREGROUND == "Foreground"
        assert JobState.BACKGROUND == "Background"

    def test_only_reachable_states(self) -> None:
        """There is no stopped state."""
        assert len(JobState) == 2


class TestJob:
    """Verify the Job data structure."""

    def test_job_str(self) -> None:
        """String form is ``[id] (pid) state command_line``."""
        job = Job(job_id=3, pid=42, state=JobState.BACKGROUND, command_line="sleep 5 &")
        assert str(job) == "[3] (42) Background sleep 5 &"


class TestAdd:
    """Verify job id allocation and foreground exclusivity."""

    def test_sequential_ids(self) -> None:
        """The first job gets id 0, the next id 1."""
        table = JobTable()
        assert table.add(pid=1, state=JobState.FOREGROUND, command_line="one") == 0
        assert table.add(pid=2, state=JobState.BACKGROUND, command_line="two") == 1

    def test_foreground_slot_set(self) -> None:
        """Adding a foreground job records it as the foreground job."""
        table = JobTable()
        table.add(pid=1, state=JobState.BACKGROUND, command_line="one")
        assert table.foreground_job is None
        table.add(pid=2, state=JobState.FOREGROUND, command_line="two")
        assert table.foreground_job == 1

    def test_second_foreground_rejected(self) -> None:
        """A second foreground job raises and changes nothing."""
        table = JobTable()
        table.add(pid=1, state=JobState.FOREGROUND, command_line="one")
        with pytest.raises(ForegroundConflictError, match="foreground job already exists"):
            table.add(pid=2, state=JobState.FOREGROUND, command_line="two")
        assert len(table) == 1
        assert table.get_pid(0) == 1
        assert table.high_watermark == 0
        assert table.foreground_job == 0

    def test_conflict_consumes_no_id(self) -> None:
        """The id skipped by a refused add is handed to the next add."""
        table = JobTable()
        table.add(pid=1, state=JobState.FOREGROUND, command_line="one")
        with pytest.raises(ForegroundConflictError):
            table.add(pid=2, state=JobState.FOREGROUND, command_line="two")
        assert table.add(pid=2, state=JobState.BACKGROUND, command_line="two") == 1

    def test_conflict_is_table_error(self) -> None:
        """ForegroundConflictError is a JobTableError."""
        assert issubclass(ForegroundConflictError, JobTableError)

    def test_foreground_allowed_after_previous_deleted(self) -> None:
        """Once the foreground job is gone a new one may be added."""
        table = JobTable()
        table.add(pid=1, state=JobState.FOREGROUND, command_line="one")
        table.delete(0)
        assert table.add(pid=2, state=JobState.FOREGROUND, command_line="two") == 0
        assert table.foreground_job == 0


class TestLookups:
    """Verify pure lookups."""

    def test_get_fields(self) -> None:
        """Each job's pid, state and command line are retrievable."""
        table = _three_jobs()
        assert table.get_pid(0) == 1
        assert table.get_state(0) is JobState.FOREGROUND
        assert table.get_cmdline(0) == "one"
        assert table.get_pid(2) == 3
        assert table.get_state(2) is JobState.BACKGROUND
        assert table.get_cmdline(2) == "three"

    def test_missing_returns_none(self) -> None:
        """Lookups on an unknown id return None."""
        table = _three_jobs()
        assert table.get_pid(3) is None
        assert table.get_state(3) is None
        assert table.get_cmdline(3) is None
        assert table.get(3) is None

    def test_get_returns_copy(self) -> None:
        """Mutating a returned job does not touch the table."""
        table = _three_jobs()
        job = table.get(1)
        assert job is not None
        job.command_line = "changed"
        assert table.get_cmdline(1) == "two"

    def test_pid_to_jid(self) -> None:
        """Reverse lookup maps a pid to its job id."""
        table = _three_jobs()
        assert table.pid_to_jid(1) == 0
        assert table.pid_to_jid(3) == 2
        assert table.pid_to_jid(99) is None


class TestDelete:
    """Verify deletion and watermark maintenance."""

    def test_delete_existing(self) -> None:
        """Deleting a present job returns True and removes it."""
        table = _three_jobs()
        assert table.delete(1) is True
        assert table.get_pid(1) is None
        assert len(table) == 2

    def test_delete_missing(self) -> None:
        """Deleting an unknown id returns False and changes nothing."""
        table = _three_jobs()
        assert table.delete(3) is False
        assert len(table) == 3
        assert table.high_watermark == 2

    def test_max_deletion_reuses_id(self) -> None:
        """Deleting the highest id lets the next add reuse it."""
        table = _three_jobs()
        table.delete(2)
        assert table.high_watermark == 1
        assert table.add(pid=4, state=JobState.BACKGROUND, command_line="four") == 2

    def test_gap_is_not_filled(self) -> None:
        """Deleting a lower id leaves a gap the next add skips."""
        table = _three_jobs()
        table.delete(1)
        assert table.high_watermark == 2
        assert table.add(pid=4, state=JobState.BACKGROUND, command_line="four") == 3

    def test_watermark_falls_past_gaps(self) -> None:
        """After a gap, deleting the max drops to the next remaining id."""
        table = _three_jobs()
        table.delete(1)
        table.delete(2)
        assert table.high_watermark == 0
        assert table.add(pid=5, state=JobState.BACKGROUND, command_line="five") == 1

    def test_empty_table_restarts_at_zero(self) -> None:
        """Emptying the table resets allocation to 0."""
        table = _three_jobs()
        for job_id in (0, 1, 2):
            table.delete(job_id)
        assert table.high_watermark is None
        assert table.add(pid=9, state=JobState.BACKGROUND, command_line="nine") == 0

    def test_delete_clears_foreground(self) -> None:
        """Deleting the foreground job empties the foreground slot."""
        table = _three_jobs()
        table.delete(0)
        assert table.foreground_job is None
        assert table.get_state(0) is None
        assert table.get_pid(0) is None
        assert table.get_cmdline(0) is None

    def test_delete_background_keeps_foreground(self) -> None:
        """Deleting a background job leaves the foreground job alone."""
        table = _three_jobs()
        table.delete(1)
        assert table.foreground_job == 0


class TestScenario:
    """The add/conflict/delete sequence from start to finish."""

    def test_end_to_end(self) -> None:
        """Ids follow the watermark through conflicts and deletions."""
        table = JobTable()
        assert table.add(pid=1, state=JobState.FOREGROUND, command_line="one") == 0
        assert table.add(pid=2, state=JobState.BACKGROUND, command_line="two") == 1
        with pytest.raises(ForegroundConflictError):
            table.add(pid=3, state=JobState.FOREGROUND, command_line="three")
        expected_three = 2
        assert table.add(pid=3, state=JobState.BACKGROUND, command_line="three") == expected_three
        assert table.delete(1) is True
        assert table.get_pid(1) is None
        expected_four = 3
        assert table.add(pid=4, state=JobState.BACKGROUND, command_line="four") == expected_four


class TestListing:
    """Verify the ``jobs`` listing format."""

    def test_list_writes_one_line_per_job(self) -> None:
        """Every job appears once in the listing."""
        table = _three_jobs()
        sink = io.StringIO()
        table.list_jobs(sink)
        lines = sink.getvalue().splitlines()
        assert sorted(lines) == [
            "[0] (1) Foreground one",
            "[1] (2) Background two",
            "[2] (3) Background three",
        ]

    def test_list_empty(self) -> None:
        """An empty table writes nothing."""
        sink = io.StringIO()
        JobTable().list_jobs(sink)
        assert sink.getvalue() == ""

    def test_snapshot(self) -> None:
        """snapshot returns every job."""
        table = _three_jobs()
        assert {job.job_id for job in table.snapshot()} == {0, 1, 2}


class TestConcurrency:
    """Verify the table stays consistent under concurrent use."""

    def test_concurrent_adds_get_unique_ids(self) -> None:
        """Threads adding at once never receive the same id."""
        table = JobTable()
        ids: list[int] = []
        ids_lock = threading.Lock()
        per_thread = 50
        thread_count = 8

        def _worker(offset: int) -> None:
            for i in range(per_thread):
                job_id = table.add(
                    pid=offset * per_thread + i,
                    state=JobState.BACKGROUND,
                    command_line="worker",
                )
                with ids_lock:
                    ids.append(job_id)

        threads = [threading.Thread(target=_worker, args=(n,)) for n in range(thread_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == len(set(ids)) == per_thread * thread_count
        assert table.high_watermark == max(ids)

    def test_concurrent_deletes_remove_only_own_rows(self) -> None:
        """Each deleter removes exactly its own job."""
        table = JobTable()
        job_ids = [
            table.add(pid=n, state=JobState.BACKGROUND, command_line=f"job {n}")
            for n in range(100)
        ]
        results: dict[int, bool] = {}

        def _delete(job_id: int) -> None:
            results[job_id] = table.delete(job_id)

        threads = [threading.Thread(target=_delete, args=(j,)) for j in job_ids[::2]]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(results.values())
        assert {job.job_id for job in table.snapshot()} == set(job_ids[1::2])
        assert table.high_watermark == job_ids[-1]
