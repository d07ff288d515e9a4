"""Unit tests for IdentityStorage."""

from __future__ import annotations

import unittest

from context_storage import hooks as events
from context_storage.hooks import Hooks
from context_storage.identity import TEMP_SESSION_PREFIX, SessionIdentity
from context_storage.identity_storage import IdentityStorage
from tests.mocks.mock_drivers import RecordingStorage


class TestIdentityStorage(unittest.TestCase):
    """Test identity tracking."""

    def setUp(self):
        self.driver = RecordingStorage()
        self.storage = IdentityStorage(SessionIdentity(agent_name="support", chat_name="c1"), [self.driver])

    def test_keyed_by_agent_only(self):
        self.assertEqual(self.storage.key, "context_support_default")

    def test_add_identity(self):
        identity = SessionIdentity(agent_name="support", chat_name="c1", scope="chatHistory")

        self.assertTrue(self.storage.add_identity(identity))

        self.assertTrue(self.storage.has_key("chatHistory_support_c1"))
        self.assertEqual(self.storage.get_by_key("chatHistory_support_c1"), identity)
        self.assertTrue(self.storage.dirty)

    def test_duplicates_are_ignored(self):
        identity = SessionIdentity(agent_name="support", chat_name="c1", scope="chatHistory")
        self.storage.add_identity(identity)

        self.assertFalse(self.storage.add_identity(identity))
        self.assertEqual(self.storage.get_keys(), ["chatHistory_support_c1"])

    def test_temporary_identities_are_skipped(self):
        identity = SessionIdentity(agent_name="support", chat_name=f"{TEMP_SESSION_PREFIX}x", scope="chatHistory")

        self.assertFalse(self.storage.add_identity(identity))
        self.assertEqual(self.storage.get_keys(), [])
        self.assertFalse(self.storage.dirty)

    def test_custom_temporary_prefix(self):
        storage = IdentityStorage(SessionIdentity(agent_name="support"), temp_session_prefix="scratch-")
        self.assertFalse(storage.add_identity(SessionIdentity(agent_name="support", chat_name="scratch-1", scope="s")))
        self.assertTrue(
            storage.add_identity(SessionIdentity(agent_name="support", chat_name=f"{TEMP_SESSION_PREFIX}1", scope="s")),
        )

    def test_remove_by_key(self):
        self.storage.add_identity(SessionIdentity(agent_name="support", chat_name="c1", scope="usage"))

        self.assertTrue(self.storage.remove_by_key("usage_support_c1"))
        self.assertFalse(self.storage.remove_by_key("usage_support_c1"))
        self.assertEqual(self.storage.get_keys(), [])

    def test_scope_and_prefix_lookups(self):
        for scope in ("chatHistory", "usage"):
            for chat in ("c1", "c2"):
                self.storage.add_identity(SessionIdentity(agent_name="support", chat_name=chat, scope=scope))

        self.assertEqual(len(self.storage.get_identities_by_scope("usage")), 2)
        self.assertEqual(
            self.storage.get_keys_by_prefix("chatHistory_"),
            ["chatHistory_support_c1", "chatHistory_support_c2"],
        )
        self.assertEqual(len(self.storage.get_identities()), 4)

    def test_tracking_list_persists(self):
        identity = SessionIdentity(agent_name="support", chat_name="c1", scope="chatHistory")
        self.storage.add_identity(identity)
        self.storage.save()

        reloaded = IdentityStorage(SessionIdentity(agent_name="support", chat_name="other"), [self.driver])
        self.assertEqual(reloaded.get_identities().all(), [identity])

    def test_identity_hooks(self):
        hooks = Hooks()
        seen = []
        hooks.on(events.IDENTITY_ADDING, lambda identity, **kwargs: seen.append(("adding", identity.key)))
        hooks.on(events.IDENTITY_ADDED, lambda identity, **kwargs: seen.append(("added", identity.key)))
        storage = IdentityStorage(SessionIdentity(agent_name="support"), hooks=hooks)

        storage.add_identity(SessionIdentity(agent_name="support", scope="usage"))

        self.assertEqual(seen, [("adding", "usage_support_default"), ("added", "usage_support_default")])
