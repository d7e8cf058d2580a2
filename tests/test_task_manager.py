"""Tests for the TaskManager lifecycle helper."""

from __future__ import annotations

import asyncio
import unittest

from openrouter_chat.task_manager import TaskManager, send_task_name


async def _sleep_forever(marker: list[str], label: str) -> None:
    try:
        await asyncio.sleep(9999)
    except asyncio.CancelledError:
        marker.append(label)
        raise


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named and anonymous task lifecycle management."""

    async def test_spawn_named_and_cancel_by_name(self) -> None:
        tm = TaskManager()
        cancelled: list[str] = []
        task = tm.spawn(_sleep_forever(cancelled, "send"), name=send_task_name("c1"))
        await asyncio.sleep(0)
        self.assertIs(tm.get("send:c1"), task)
        self.assertFalse(task.done())

        with self.assertLogs("openrouter_chat.task_manager", level="INFO"):
            self.assertTrue(await tm.cancel("send:c1"))

        self.assertTrue(task.cancelled())
        self.assertEqual(cancelled, ["send"])
        self.assertIsNone(tm.get("send:c1"))

    async def test_cancel_nonexistent_name_returns_false(self) -> None:
        tm = TaskManager()
        self.assertFalse(await tm.cancel("does_not_exist"))

    async def test_named_task_forgotten_when_done(self) -> None:
        tm = TaskManager()

        async def _quick() -> str:
            return "ok"

        task = tm.spawn(_quick(), name="quick")
        self.assertEqual(await task, "ok")
        await asyncio.sleep(0)
        self.assertIsNone(tm.get("quick"))
        self.assertFalse(await tm.cancel("quick"))

    async def test_cancel_all_stops_every_named_task(self) -> None:
        tm = TaskManager()
        marker: list[str] = []
        tm.spawn(_sleep_forever(marker, "a"), name=send_task_name("a"))
        tm.spawn(_sleep_forever(marker, "b"), name=send_task_name("b"))
        tm.spawn(_sleep_forever(marker, "t"), name="thinking:m1")
        await asyncio.sleep(0)

        self.assertIsNotNone(tm.get(send_task_name("a")))
        self.assertIsNotNone(tm.get("thinking:m1"))
        await tm.cancel_all()
        self.assertEqual(sorted(marker), ["a", "b", "t"])
        self.assertIsNone(tm.get(send_task_name("a")))

    async def test_failed_task_is_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise RuntimeError("boom")

        with self.assertLogs("openrouter_chat.task_manager", level="ERROR") as logs:
            task = tm.spawn(_boom(), name="boom")
            with self.assertRaises(RuntimeError):
                await task
            await asyncio.sleep(0)
        self.assertTrue(any("tasks.failed" in line for line in logs.output))

    async def test_reusing_name_of_running_task_warns(self) -> None:
        tm = TaskManager()
        marker: list[str] = []
        first = tm.spawn(_sleep_forever(marker, "first"), name="x")
        with self.assertLogs("openrouter_chat.task_manager", level="WARNING"):
            second = tm.spawn(_sleep_forever(marker, "second"), name="x")
        self.assertIs(tm.get("x"), second)
        first.cancel()
        await tm.cancel_all()
        await asyncio.gather(first, return_exceptions=True)
        self.assertEqual(sorted(marker), ["first", "second"])

    async def test_cancel_all_handles_mixed_tasks(self) -> None:
        tm = TaskManager()
        results: list[str] = []
        tm.spawn(_sleep_forever(results, "named"), name="n1")
        tm.spawn(_sleep_forever(results, "anon"))
        await asyncio.sleep(0)
        await tm.cancel_all()
        self.assertIn("named", results)
        self.assertIn("anon", results)


if __name__ == "__main__":
    unittest.main()
