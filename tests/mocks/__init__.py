"""
Mock implementations initialization
"""
from .mock_drivers import FailingStorage, FakeRedis, RaisingStorage, RecordingStorage
from .mock_llm_client import MockLLMClient, MockLLMClientWithErrors

__all__ = [
    'FailingStorage',
    'FakeRedis',
    'MockLLMClient',
    'MockLLMClientWithErrors',
    'RaisingStorage',
    'RecordingStorage',
]
