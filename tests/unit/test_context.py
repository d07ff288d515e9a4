"""Unit tests for Context."""

from __future__ import annotations

import unittest

from context_storage import hooks as events
from context_storage.chat_history_storage import ChatHistoryStorage
from context_storage.context import Context
from context_storage.context_query import ContextQuery
from context_storage.drivers import InMemoryStorage
from context_storage.exceptions import ConfigurationError
from context_storage.hooks import Hooks
from context_storage.identity import TEMP_SESSION_PREFIX, SessionIdentity
from context_storage.records import Message, Usage
from context_storage.truncation import SlidingWindowStrategy, SymbolizationStrategy
from context_storage.usage_storage import UsageStorage
from tests.mocks.mock_drivers import FailingStorage, RecordingStorage


class ExplodingStorage(UsageStorage):
    """Usage storage whose bulk operations raise."""

    def save(self, force=False):
        msg = "disk full"
        raise OSError(msg)

    def read(self):
        msg = "disk gone"
        raise OSError(msg)


class TestContextRegistration(unittest.TestCase):
    """Test storage registration and identity tracking."""

    def setUp(self):
        self.driver = RecordingStorage()
        self.identity = SessionIdentity(agent_name="support", chat_name="c1")
        self.context = Context(self.identity, [self.driver])

    def test_make_registers_and_tracks(self):
        history = self.context.make(ChatHistoryStorage)

        self.assertIs(self.context.get_storage("chatHistory"), history)
        self.assertIs(self.context.chat_history(), history)
        self.assertTrue(self.context.has(ChatHistoryStorage))
        self.assertEqual(self.context.get_tracked_keys(), ["chatHistory_support_c1"])

    def test_make_passes_options(self):
        usage = self.context.make(UsageStorage, model_name="gpt-a")
        self.assertEqual(usage.model_name, "gpt-a")

    def test_storages_share_driver_instances(self):
        history = self.context.make(ChatHistoryStorage)
        usage = self.context.make(UsageStorage)

        self.assertIs(history.storage_manager.drivers[0], self.driver)
        self.assertIs(usage.storage_manager.drivers[0], self.driver)

    def test_register_existing_storage(self):
        storage = UsageStorage(self.identity, [InMemoryStorage()])
        self.context.register(storage)

        self.assertEqual(self.context.storage_names(), ["usage"])
        self.assertEqual(self.context.get_tracked_keys_by_prefix("usage_"), ["usage_support_c1"])

    def test_temporary_session_is_not_tracked(self):
        context = Context(SessionIdentity(agent_name="support", chat_name=f"{TEMP_SESSION_PREFIX}1"))
        context.make(ChatHistoryStorage)
        self.assertEqual(context.get_tracked_keys(), [])
        self.assertTrue(context.has("chatHistory"))

    def test_tracking_is_shared_between_sessions(self):
        first = Context(self.identity, [self.driver])
        first.make(ChatHistoryStorage)
        first.save()

        second = Context(SessionIdentity(agent_name="support", chat_name="c2"), [self.driver])
        second.make(ChatHistoryStorage)
        second.save()

        self.assertEqual(
            second.get_tracked_keys(),
            ["chatHistory_support_c1", "chatHistory_support_c2"],
        )
        self.assertEqual(len(second.get_tracked_identities_by_scope("chatHistory")), 2)

    def test_remove_identity_from_tracking(self):
        self.context.make(ChatHistoryStorage)

        self.assertTrue(self.context.remove_identity_from_tracking("chatHistory_support_c1"))
        self.assertFalse(self.context.remove_identity_from_tracking("chatHistory_support_c1"))
        self.assertEqual(self.driver.read(self.context.identity_storage.identity), [])

    def test_storage_drivers_per_prefix(self):
        history_driver = InMemoryStorage()
        context = Context(self.identity, [self.driver], storage_drivers={"chatHistory": [history_driver]})

        history = context.make(ChatHistoryStorage)
        usage = context.make(UsageStorage)

        self.assertEqual(history.storage_manager.drivers, [history_driver])
        self.assertEqual(usage.storage_manager.drivers, [self.driver])


class TestContextBulkOperations(unittest.TestCase):
    """Test fan-out over registered storages."""

    def setUp(self):
        self.driver = RecordingStorage()
        self.context = Context(SessionIdentity(agent_name="support", chat_name="c1"), [self.driver])
        self.history = self.context.make(ChatHistoryStorage)

    def test_save_includes_tracking_list(self):
        self.history.add_message(Message.user("hi"))

        results = self.context.save()

        self.assertEqual(results, {"chatHistory": True, "context": True})
        written = [key for key, _ in self.driver.writes]
        self.assertIn("chatHistory_support_c1", written)
        self.assertIn("context_support_default", written)

    def test_failing_storage_does_not_stop_others(self):
        self.context.register(ExplodingStorage(self.context.identity))
        self.history.add_message(Message.user("hi"))

        results = self.context.save()

        self.assertFalse(results["usage"])
        self.assertTrue(results["chatHistory"])
        self.assertEqual(self.driver.read(self.history.identity)[0]["content"], "hi")

    def test_read_reports_each_storage(self):
        self.context.register(ExplodingStorage(self.context.identity))
        self.assertEqual(self.context.read(), {"chatHistory": True, "usage": False})

    def test_clear_then_save_persists_empty(self):
        self.history.add_message(Message.user("hi"))
        self.context.save()

        self.assertEqual(self.context.clear(), {"chatHistory": True})
        self.context.save()

        self.assertEqual(self.driver.read(self.history.identity), [])

    def test_remove_untracks_only_removed_keys(self):
        driver = InMemoryStorage()
        other = Context(SessionIdentity(agent_name="support", chat_name="c2"), [driver])
        other.make(ChatHistoryStorage)
        other.save()
        context = Context(SessionIdentity(agent_name="support", chat_name="c1"), [driver])
        history = context.make(ChatHistoryStorage)
        history.add_message(Message.user("hi"))
        context.save()

        results = context.remove()

        self.assertTrue(results["chatHistory"])
        self.assertIsNone(driver.read(history.identity))
        self.assertEqual(context.get_tracked_keys(), ["chatHistory_support_c2"])
        self.assertEqual(ContextQuery.named("support", [driver]).get_storage_keys(), ["chatHistory_support_c2"])

    def test_failed_remove_keeps_tracking(self):
        context = Context(SessionIdentity(agent_name="support", chat_name="c3"), [FailingStorage()])
        context.make(ChatHistoryStorage)

        results = context.remove()

        self.assertFalse(results["chatHistory"])
        self.assertEqual(context.get_tracked_keys(), ["chatHistory_support_c3"])

    def test_context_events(self):
        hooks = Hooks()
        seen = []
        for event in (events.CONTEXT_SAVING, events.CONTEXT_SAVED, events.STORAGE_REGISTERED):
            hooks.on(event, lambda event=event, **kwargs: seen.append(event))

        context = Context(SessionIdentity(agent_name="support"), hooks=hooks)
        context.make(UsageStorage)
        context.save()

        self.assertEqual(seen, [events.STORAGE_REGISTERED, events.CONTEXT_SAVING, events.CONTEXT_SAVED])


class TestContextTruncation(unittest.TestCase):
    """Test truncation through the context."""

    def setUp(self):
        self.context = Context(
            SessionIdentity(agent_name="support", chat_name="c1"),
            truncation_strategy=SlidingWindowStrategy(keep_messages=2),
            truncation_threshold=1000,
            truncation_buffer=0.2,
        )
        self.history = self.context.make(ChatHistoryStorage)
        self.history.add_message(Message.system("sys"))
        for turn in range(1, 4):
            self.history.add_message(Message.user(f"u{turn}"))
            self.history.add_message(Message.assistant(f"a{turn}"))

    def test_effective_threshold(self):
        self.assertEqual(self.context.effective_threshold(), 800)

    def test_below_threshold_is_untouched(self):
        self.assertFalse(self.context.apply_truncation(current_tokens=750))
        self.assertEqual(self.history.count(), 7)

    def test_at_threshold_is_untouched(self):
        self.assertFalse(self.context.apply_truncation(current_tokens=800))

    def test_above_threshold_truncates(self):
        self.history.save()

        self.assertTrue(self.context.apply_truncation(current_tokens=850))

        self.assertEqual([m.content for m in self.history.get_messages()], ["sys", "u3", "a3"])
        self.assertTrue(self.history.dirty)

    def test_tokens_default_to_last_usage(self):
        self.history.add_message(Message.assistant("a4", usage=Usage(800, 100)))
        self.assertTrue(self.context.apply_truncation())
        self.assertEqual(self.history.count(), 3)

    def test_no_strategy(self):
        self.context.set_truncation_strategy(None)
        self.assertFalse(self.context.apply_truncation(current_tokens=10_000))

    def test_changing_threshold_and_buffer(self):
        self.context.set_truncation_threshold(2000)
        self.context.set_truncation_buffer(0.5)
        self.assertEqual(self.context.effective_threshold(), 1000)
        self.assertFalse(self.context.apply_truncation(current_tokens=900))

    def test_invalid_settings(self):
        with self.assertRaises(ConfigurationError):
            self.context.set_truncation_buffer(1.0)
        with self.assertRaises(ConfigurationError):
            self.context.set_truncation_buffer(-0.1)
        with self.assertRaises(ConfigurationError):
            self.context.set_truncation_threshold(-5)
        with self.assertRaises(ConfigurationError):
            Context(SessionIdentity(agent_name="a"), truncation_buffer=2)

    def test_truncation_event(self):
        hooks = Hooks()
        seen = []
        hooks.on(events.AFTER_TRUNCATION, lambda before, after, **kwargs: seen.append((before, after)))
        self.context.hooks = hooks

        self.context.apply_truncation(current_tokens=900)

        self.assertEqual(seen, [(7, 3)])

    def test_without_chat_history(self):
        context = Context(SessionIdentity(agent_name="a"), truncation_strategy=SlidingWindowStrategy())
        self.assertFalse(context.apply_truncation(current_tokens=10**9))


class TestContextFromConfig(unittest.TestCase):
    """Test building a context from configuration."""

    def test_from_config(self):
        config = {
            "context_storage": {
                "default_storage": ["in_memory"],
                "default_history_storage": [{"driver": "in_memory"}, {"driver": "in_memory"}],
                "temp_session_prefix": "tmp-",
                "truncation": {
                    "enabled": True,
                    "strategy": "symbolization",
                    "threshold": 5000,
                    "buffer": 0.1,
                    "keep_messages": 4,
                    "batch_size": 3,
                },
            },
        }

        context = Context.from_config(SessionIdentity(agent_name="support"), config)

        self.assertIsInstance(context.truncation_strategy, SymbolizationStrategy)
        self.assertEqual(context.truncation_strategy.batch_size, 3)
        self.assertEqual(context.effective_threshold(), 4500)
        self.assertEqual(context.identity_storage.temp_session_prefix, "tmp-")
        self.assertEqual(len(context.make(ChatHistoryStorage).storage_manager.drivers), 2)
        self.assertEqual(len(context.make(UsageStorage).storage_manager.drivers), 1)

    def test_disabled_truncation(self):
        config = {"context_storage": {"truncation": {"enabled": False, "strategy": "summarization"}}}
        context = Context.from_config(SessionIdentity(agent_name="support"), config)
        self.assertIsNone(context.truncation_strategy)

    def test_empty_config(self):
        context = Context.from_config(SessionIdentity(agent_name="support"), {})
        self.assertEqual(context.truncation_threshold, 128000)
        self.assertEqual(len(context.default_drivers), 1)
