"""Tests for lock-protected send-state transitions."""

from __future__ import annotations

import asyncio
import unittest

from openrouter_chat.state import InvalidTransition, SendState, StateManager


class StateManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate the send lifecycle for a single chat."""

    async def test_starts_idle_and_accepts_sends(self) -> None:
        manager = StateManager()
        self.assertEqual(manager.state, SendState.IDLE)
        self.assertTrue(await manager.try_begin_send())

    async def test_streaming_lifecycle(self) -> None:
        manager = StateManager()
        self.assertTrue(await manager.try_begin_send())
        await manager.transition_to(SendState.STREAMING)
        self.assertEqual(manager.state, SendState.STREAMING)
        await manager.transition_to(SendState.SETTLED)
        self.assertEqual(manager.state, SendState.SETTLED)

    async def test_fallback_lifecycle(self) -> None:
        manager = StateManager()
        await manager.try_begin_send()
        await manager.transition_to(SendState.FALLBACK)
        await manager.transition_to(SendState.SETTLED)
        self.assertEqual(manager.state, SendState.SETTLED)

    async def test_settled_chat_can_send_again(self) -> None:
        manager = StateManager()
        await manager.try_begin_send()
        await manager.transition_to(SendState.SETTLED)
        self.assertTrue(await manager.try_begin_send())
        self.assertEqual(manager.state, SendState.SENDING)

    async def test_busy_chat_rejects_second_send(self) -> None:
        manager = StateManager()
        await manager.try_begin_send()
        self.assertFalse(await manager.try_begin_send())
        await manager.transition_to(SendState.STREAMING)
        self.assertFalse(await manager.try_begin_send())

    async def test_illegal_transition_raises(self) -> None:
        manager = StateManager()
        with self.assertRaises(InvalidTransition):
            await manager.transition_to(SendState.STREAMING)
        await manager.try_begin_send()
        await manager.transition_to(SendState.STREAMING)
        with self.assertRaises(InvalidTransition):
            await manager.transition_to(SendState.FALLBACK)

    async def test_lock_prevents_double_send_entry(self) -> None:
        manager = StateManager()

        async def try_enter() -> bool:
            await asyncio.sleep(0)
            return await manager.try_begin_send()

        results = await asyncio.gather(*(try_enter() for _ in range(10)))
        self.assertEqual(sum(1 for result in results if result), 1)
        self.assertEqual(manager.state, SendState.SENDING)


if __name__ == "__main__":
    unittest.main()
