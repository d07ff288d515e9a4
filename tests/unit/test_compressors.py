"""Unit tests for the LLM-backed compressors."""

from __future__ import annotations

import unittest

from context_storage.compressors import (
    SUMMARIZER_SYSTEM_PROMPT,
    SYMBOLIZER_SYSTEM_PROMPT,
    LLMSummarizer,
    LLMSymbolizer,
)
from context_storage.exceptions import CompressionError
from context_storage.identity import SessionIdentity
from context_storage.records import Message, MessageArray
from context_storage.truncation import SummarizationStrategy, SymbolizationStrategy
from context_storage.usage_storage import UsageStorage
from tests.mocks.mock_llm_client import MockLLMClient, MockLLMClientWithErrors


def sample_messages() -> MessageArray:
    return MessageArray(
        [
            Message.user("How do I reset my password?"),
            Message.assistant("Use the account settings page."),
            Message.user("Thanks, that worked."),
        ],
    )


class TestLLMSummarizer(unittest.TestCase):
    """Test the summarizer."""

    def test_summary_message(self):
        client = MockLLMClient(responses=["User reset their password."])
        summarizer = LLMSummarizer(client)

        summary = summarizer.compress(sample_messages())

        self.assertEqual(summary.role, "developer")
        self.assertEqual(summary.content, "Summary of previous conversation:\nUser reset their password.")
        self.assertIn("user: How do I reset my password?", client.user_messages[0])
        self.assertIn("assistant: Use the account settings page.", client.user_messages[0])

    def test_shared_client_gets_system_prompt_once(self):
        client = MockLLMClient(default_response="ok")
        summarizer = LLMSummarizer(client)

        summarizer.compress(sample_messages())
        summarizer.compress(sample_messages())

        self.assertEqual(client.system_prompts, [SUMMARIZER_SYSTEM_PROMPT])
        self.assertEqual(client.call_count, 2)

    def test_factory_builds_fresh_client_per_request(self):
        clients = []

        def factory():
            client = MockLLMClient(default_response="ok")
            clients.append(client)
            return client

        summarizer = LLMSummarizer(factory)
        summarizer.compress(sample_messages())
        summarizer.compress(sample_messages())

        self.assertEqual(len(clients), 2)
        self.assertTrue(all(client.system_prompts == [SUMMARIZER_SYSTEM_PROMPT] for client in clients))

    def test_custom_prompt_and_title(self):
        client = MockLLMClient(default_response="done")
        summarizer = LLMSummarizer(client, prompt="Digest:\n{messages}", title="Recap")

        summary = summarizer.compress(MessageArray([Message.user("hi")]))

        self.assertEqual(client.user_messages, ["Digest:\nuser: hi"])
        self.assertEqual(summary.content, "Recap:\ndone")

    def test_client_error_becomes_compression_error(self):
        with self.assertRaises(CompressionError):
            LLMSummarizer(MockLLMClientWithErrors(max_errors=1)).compress(sample_messages())

    def test_empty_response_is_an_error(self):
        with self.assertRaises(CompressionError):
            LLMSummarizer(MockLLMClient(default_response="   ")).compress(sample_messages())

    def test_strategy_falls_back_when_llm_fails(self):
        history = MessageArray([Message.system("sys"), *sample_messages(), Message.user("new question")])
        strategy = SummarizationStrategy(keep_messages=1, compressor=LLMSummarizer(MockLLMClientWithErrors(5)))

        result = strategy.truncate(history, 100, 200)

        self.assertEqual(
            [m.content for m in result],
            [
                "sys",
                "Summary of previous conversation: Previous conversation contained 3 messages.",
                "new question",
            ],
        )


class TestLLMSymbolizer(unittest.TestCase):
    """Test the symbolizer."""

    def test_one_line_per_message(self):
        client = MockLLMClient()
        client.add_symbols_response(
            [
                {"role": "User", "symbol": "asked how to reset password"},
                {"role": "You", "symbol": "pointed to settings"},
                {"role": "User", "symbol": "confirmed fix"},
            ],
        )

        result = LLMSymbolizer(client).compress(sample_messages())

        self.assertEqual(
            result.content.splitlines(),
            [
                "- [User] asked how to reset password",
                "- [You] pointed to settings",
                "- [User] confirmed fix",
            ],
        )
        self.assertEqual(client.system_prompts, [SYMBOLIZER_SYSTEM_PROMPT])
        self.assertIn("exactly 3 symbols", client.user_messages[0])
        self.assertIn('<message index="1" role="You">', client.user_messages[0])

    def test_missing_symbols_use_previews(self):
        client = MockLLMClient()
        client.add_symbols_response([{"symbol": "asked about password"}])

        lines = LLMSymbolizer(client).compress(sample_messages()).content.splitlines()

        self.assertEqual(lines[0], "- [User] asked about password")
        self.assertEqual(lines[1], "- [You] Use the account settings page.")
        self.assertEqual(len(lines), 3)

    def test_json_embedded_in_text(self):
        client = MockLLMClient(responses=['Sure!\n{"symbols": [{"symbol": "greeting"}]}\nDone.'])
        result = LLMSymbolizer(client).compress(MessageArray([Message.user("hello there")]))
        self.assertEqual(result.content, "- [User] greeting")

    def test_invalid_responses(self):
        for response in ("no json here", "{broken", '{"items": []}'):
            with self.subTest(response=response), self.assertRaises(CompressionError):
                LLMSymbolizer(MockLLMClient(responses=[response])).compress(sample_messages())

    def test_strategy_with_llm_symbolizer(self):
        client = MockLLMClient()
        client.add_symbols_response([{"symbol": "s1"}, {"symbol": "s2"}])
        client.add_symbols_response([{"symbol": "s3"}])
        history = MessageArray([Message.system("sys"), *sample_messages(), Message.user("q"), Message.user("r")])
        strategy = SymbolizationStrategy(keep_messages=2, batch_size=2, compressor=LLMSymbolizer(client))

        result = strategy.truncate(history, 100, 200)

        self.assertEqual(
            result[1].content,
            "Conversation symbols:\n- [User] s1\n- [You] s2\n- [User] s3",
        )
        self.assertEqual([m.content for m in result][2:], ["q", "r"])
        self.assertEqual(client.call_count, 2)


class TestCompressionUsage(unittest.TestCase):
    """Test usage recording of compression requests."""

    def setUp(self):
        self.usage = UsageStorage(SessionIdentity(agent_name="support", chat_name="c1"), model_name="mock")

    def test_summarizer_records_each_request(self):
        summarizer = LLMSummarizer(lambda: MockLLMClient(default_response="x" * 40), usage_storage=self.usage)

        summarizer.compress(sample_messages())
        summarizer.compress(sample_messages())

        records = self.usage.get_usage_records()
        self.assertEqual(len(records), 2)
        self.assertEqual(self.usage.aggregate()["total_tokens"], 20)
        self.assertEqual(records.last().agent_name, "support")
        self.assertEqual(records.last().model_name, "mock")
        self.assertTrue(self.usage.dirty)

    def test_symbolizer_records_request(self):
        client = MockLLMClient()
        client.add_symbols_response([{"role": "user", "symbol": "asks"}])
        symbolizer = LLMSymbolizer(client, usage_storage=self.usage)

        symbolizer.compress(MessageArray([Message.user("hello")]))

        self.assertEqual(self.usage.count(), 1)
        self.assertGreater(self.usage.aggregate()["total_tokens"], 0)

    def test_failed_request_records_nothing(self):
        summarizer = LLMSummarizer(MockLLMClientWithErrors(max_errors=1), usage_storage=self.usage)

        with self.assertRaises(CompressionError):
            summarizer.compress(sample_messages())

        self.assertEqual(self.usage.count(), 0)

    def test_without_usage_storage_no_hook_is_set(self):
        client = MockLLMClient(default_response="summary")
        LLMSummarizer(client).compress(sample_messages())
        self.assertIsNone(client._statistics_hook)
