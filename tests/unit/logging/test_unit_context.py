# tests/unit/logging/test_unit_context.py - v1
"""Tests for logging/context.py - contextual logging variables."""

from __future__ import annotations

import asyncio

import pytest

from runarchive.logging.context import (
    clear_context,
    get_context,
    set_run_context,
    set_stage_context,
)


class TestLogContext:
    def test_initial_state(self):
        ctx = get_context()
        assert ctx.run_id is None
        assert ctx.assay_id is None
        assert ctx.stage is None

    def test_set_run_context(self):
        set_run_context("sample_001", "m1")
        ctx = get_context()
        assert ctx.run_id == "sample_001"
        assert ctx.assay_id == "m1"

    def test_run_context_resets_assay(self):
        set_run_context("sample_001", "m1")
        set_run_context("sample_002")
        assert get_context().assay_id is None

    def test_as_dict_filters_none(self):
        set_run_context("sample_001")
        d = get_context().as_dict()
        assert d == {"run_id": "sample_001"}

    def test_clear(self):
        set_run_context("sample_001", "m1")
        set_stage_context("tool")
        clear_context()
        assert get_context().as_dict() == {}

    @pytest.mark.asyncio
    async def test_context_follows_to_thread(self):
        set_run_context("sample_001")
        set_stage_context("validate")
        ctx = await asyncio.to_thread(get_context)
        assert ctx.run_id == "sample_001"
        assert ctx.stage == "validate"

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        async def worker(run_id: str) -> str | None:
            set_run_context(run_id)
            await asyncio.sleep(0)
            return get_context().run_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
