import pytest

from fakes import FakeLLM, FakeRepository


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()
