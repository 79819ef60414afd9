"""Tests for the built-in notifier plugin."""

from __future__ import annotations

import logging

import pytest

from querystate.plugins.builtins.notifier import Notice, NotifierPlugin
from querystate.plugins.manager import PluginManager


class TestNotifierPlugin:
    def test_success_and_failure_notices(self) -> None:
        pm = PluginManager()
        notifier = NotifierPlugin()
        pm.register_plugin(notifier, name="notifier")

        pm.hook.mutation_settled(name="createTest", ok=True, error=None)
        pm.hook.mutation_settled(name="deleteTest", ok=False, error="Forbidden")

        assert notifier.drain() == [
            Notice(title="createTest", description="createTest completed successfully."),
            Notice(title="Error", description="Forbidden", variant="destructive"),
        ]
        assert notifier.notices == []

    def test_failure_without_message(self) -> None:
        notifier = NotifierPlugin()
        notifier.mutation_settled(name="publish", ok=False, error=None)
        assert notifier.notices[0].description == "publish failed. Please try again."

    def test_notices_are_bounded(self) -> None:
        notifier = NotifierPlugin(max_notices=2)
        for i in range(5):
            notifier.mutation_settled(name=f"m{i}", ok=True, error=None)
        assert [n.title for n in notifier.notices] == ["m3", "m4"]

    def test_failed_query_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        notifier = NotifierPlugin()
        with caplog.at_level(logging.WARNING, logger="querystate.plugins"):
            notifier.query_settled(key="user", status="error", error="HTTP 500")
            notifier.query_settled(key="user", status="success", error=None)
        assert [r.getMessage() for r in caplog.records] == ["Query user failed: HTTP 500"]
