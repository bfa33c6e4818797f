import os
from typing import Iterator, List, Optional, Tuple

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

# Ensure AWS SDK has a region and fake credentials for moto
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")

from plant_monitor.config import AppConfig  # noqa: E402
from plant_monitor.main import create_app  # noqa: E402
from plant_monitor.store import PlantStore  # noqa: E402

TABLE_NAME = "test-plant-monitor"


class FakeTextGenerator:
    """Records prompts and returns a canned message (or raises ``error``)."""

    def __init__(self, text: str = "I am thriving, thank you!", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls: List[Tuple[str, str, int, float]] = []

    def generate(self, system_prompt: str, user_prompt: str, *, max_tokens: int, temperature: float) -> str:
        self.calls.append((system_prompt, user_prompt, max_tokens, temperature))
        if self.error is not None:
            raise self.error
        return self.text


class FakePoster:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.posts: List[str] = []

    def post(self, text: str) -> str:
        if self.error is not None:
            raise self.error
        self.posts.append(text)
        return f"post-{len(self.posts)}"


@pytest.fixture
def dynamodb_table() -> Iterator[object]:
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {"AttributeName": "recordType", "KeyType": "HASH"},
                {"AttributeName": "sk", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "recordType", "AttributeType": "S"},
                {"AttributeName": "sk", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        yield table


@pytest.fixture
def store(dynamodb_table) -> PlantStore:
    return PlantStore(dynamodb_table)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        table_name=TABLE_NAME,
        aws_region="us-east-1",
        openai_api_key="test-key",
        x_access_token="test-token",
        scheduler_enabled=False,
        message_max_tokens=100,
        message_temperature=0.7,
    )


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def poster() -> FakePoster:
    return FakePoster()


@pytest.fixture
def client(config, store, text_generator, poster) -> Iterator[TestClient]:
    app = create_app(config, store=store, text_generator=text_generator, poster=poster)
    with TestClient(app) as test_client:
        yield test_client

