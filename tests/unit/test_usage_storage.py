"""Unit tests for UsageStorage."""

from __future__ import annotations

import unittest

from context_storage.identity import SessionIdentity
from context_storage.records import Usage, UsageRecord
from context_storage.usage_storage import UsageStorage


class TestUsageStorage(unittest.TestCase):
    """Test usage recording and reporting."""

    def setUp(self):
        identity = SessionIdentity(agent_name="support", chat_name="c1", user_id="u1", group="team")
        self.storage = UsageStorage(identity, model_name="gpt-a", provider_name="openai")

    def test_add_usage_stamps_defaults(self):
        record = self.storage.add_usage(Usage(10, 5))

        self.assertEqual(record.model_name, "gpt-a")
        self.assertEqual(record.provider_name, "openai")
        self.assertEqual(record.agent_name, "support")
        self.assertEqual(record.user_id, "u1")
        self.assertEqual(record.group, "team")
        self.assertEqual(record.total_tokens, 15)
        self.assertEqual(self.storage.count(), 1)

    def test_add_usage_overrides(self):
        record = self.storage.add_usage({"prompt_tokens": 3, "completion_tokens": 4}, model_name="m", provider_name="p")
        self.assertEqual((record.model_name, record.provider_name, record.total_tokens), ("m", "p", 7))

    def test_add_record(self):
        self.storage.add_record(UsageRecord(prompt_tokens=1, agent_name="x"))
        self.assertEqual(self.storage.get_usage_records().first().agent_name, "x")

    def test_filters_combine(self):
        self.storage.add_usage(Usage(10, 5))
        self.storage.add_usage(Usage(20, 10), model_name="gpt-b")
        self.storage.add_usage(Usage(1, 1), provider_name="ollama")

        self.assertEqual(len(self.storage.get_filtered_usage({"provider_name": "openai"})), 2)
        self.assertEqual(len(self.storage.get_filtered_usage({"provider_name": "openai", "model_name": "gpt-b"})), 1)
        self.assertEqual(len(self.storage.get_filtered_usage()), 3)

    def test_unknown_filter(self):
        with self.assertRaises(ValueError):
            self.storage.get_filtered_usage({"colour": "red"})

    def test_date_filters(self):
        self.storage.add_record(UsageRecord(prompt_tokens=1, recorded_at="2024-01-10T08:00:00+00:00"))
        self.storage.add_record(UsageRecord(prompt_tokens=2, recorded_at="2024-02-10T08:00:00+00:00"))
        self.storage.add_record(UsageRecord(prompt_tokens=4, recorded_at="2024-03-10T08:00:00+00:00"))

        self.assertEqual(self.storage.aggregate({"date_from": "2024-02-01"})["prompt_tokens"], 6)
        self.assertEqual(self.storage.aggregate({"date_to": "2024-02-10"})["prompt_tokens"], 3)
        self.assertEqual(
            self.storage.aggregate({"date_from": "2024-02-01", "date_to": "2024-02-28"})["prompt_tokens"],
            2,
        )
        self.assertEqual(self.storage.aggregate({"date": "2024-03-10"})["record_count"], 1)

    def test_aggregate_and_group_by(self):
        self.storage.add_usage(Usage(10, 5))
        self.storage.add_usage(Usage(20, 10), model_name="gpt-b")

        self.assertEqual(
            self.storage.aggregate(),
            {"record_count": 2, "prompt_tokens": 30, "completion_tokens": 15, "total_tokens": 45},
        )
        grouped = self.storage.group_by("model_name")
        self.assertEqual(grouped["gpt-a"]["total_tokens"], 15)
        self.assertEqual(grouped["gpt-b"]["total_tokens"], 30)

    def test_empty_aggregate(self):
        self.assertEqual(self.storage.aggregate()["record_count"], 0)
