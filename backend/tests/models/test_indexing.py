# Copyright 2024 Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models.common import IndexerConfigurationError
from models.indexing import ErrorPolicy, IndexerConfig, IndexRecord, WriteStrategy


def test_config_from_environment_defaults():
    config = IndexerConfig.from_environment({"INDEX_STORAGE_TABLE_NAME": "files", "AWS_REGION": "eu-west-1"})

    assert config == IndexerConfig(table_name="files", region="eu-west-1")
    assert config.write_strategy == WriteStrategy.OVERWRITE
    assert config.error_policy == ErrorPolicy.LOG
    assert config.conditional_write_attempts == 3


def test_config_from_environment_reads_all_settings():
    config = IndexerConfig.from_environment({
        "INDEX_STORAGE_TABLE_NAME": "files",
        "INDEX_STORAGE_TABLE_REGION": "ap-southeast-2",
        "AWS_REGION": "us-east-1",
        "INDEX_WRITE_STRATEGY": "Conditional",
        "INDEX_ERROR_POLICY": " RAISE ",
        "INDEX_CONDITIONAL_WRITE_ATTEMPTS": "5",
    })

    assert config.region == "ap-southeast-2"
    assert config.write_strategy == WriteStrategy.CONDITIONAL
    assert config.error_policy == ErrorPolicy.RAISE
    assert config.conditional_write_attempts == 5


def test_config_accepts_legacy_variable_names():
    config = IndexerConfig.from_environment({
        "DYNAMO_TABLE_ARN": "arn:aws:dynamodb:us-west-2:123456789012:table/files",
        "DYNAMO_TABLE_REGION": "us-west-2",
    })

    assert config.table_name == "arn:aws:dynamodb:us-west-2:123456789012:table/files"
    assert config.region == "us-west-2"


def test_config_requires_table_name():
    with pytest.raises(IndexerConfigurationError):
        IndexerConfig.from_environment({"AWS_REGION": "us-east-1"})


@pytest.mark.parametrize("setting, value", [
    ("INDEX_WRITE_STRATEGY", "optimistic"),
    ("INDEX_ERROR_POLICY", "ignore"),
    ("INDEX_CONDITIONAL_WRITE_ATTEMPTS", "0"),
    ("INDEX_CONDITIONAL_WRITE_ATTEMPTS", "many"),
])
def test_config_rejects_invalid_settings(setting, value):
    with pytest.raises(IndexerConfigurationError):
        IndexerConfig.from_environment({"INDEX_STORAGE_TABLE_NAME": "files", setting: value})


def test_config_is_immutable():
    config = IndexerConfig(table_name="files")

    with pytest.raises(ValidationError):
        config.table_name = "other"


def test_record_round_trips_through_table_item():
    record = IndexRecord(filename="reports/q1.csv", size=2048, created=1, last_modified=2)
    item = {k: Decimal(v) if isinstance(v, int) else v for k, v in record.to_item().items()}

    assert IndexRecord.from_item(item) == record


def test_record_rejects_last_modified_before_created():
    with pytest.raises(ValidationError):
        IndexRecord(filename="a.txt", size=1, created=10, last_modified=9)


def test_record_rejects_negative_size():
    with pytest.raises(ValidationError):
        IndexRecord(filename="a.txt", size=-1, created=1, last_modified=1)


def test_record_from_item_rejects_fractional_numbers():
    with pytest.raises(ValueError):
        IndexRecord.from_item({"filename": "a.txt", "size": Decimal("1.5"), "created": 1, "last_modified": 1})
