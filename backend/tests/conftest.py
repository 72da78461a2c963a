"""
Pytest configuration file for the bucket indexer tests.

Provides a moto backed index table and an indexer wired to it with a controllable clock.
"""

import boto3
import pytest
from moto import mock_aws

from common.dynamodb import IndexTable
from handlers.indexing.bucketIndexer import BucketIndexer
from models.indexing import IndexerConfig

TABLE_NAME = "example-index-table"

# 2023-11-14T22:13:20Z in epoch milliseconds
START_TIME = 1700000000000


class FakeClock:
    """Epoch millisecond clock that only moves when told to"""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int):
        self.now += millis


@pytest.fixture(scope="function")
def dynamodb_table():
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{"AttributeName": "filename", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "filename", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield table


@pytest.fixture(scope="function")
def index_table(dynamodb_table):
    return IndexTable(dynamodb_table)


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def config():
    return IndexerConfig(table_name=TABLE_NAME, region="us-east-1")


@pytest.fixture(scope="function")
def indexer(config, index_table, clock):
    return BucketIndexer(config, index_table, clock=clock)
