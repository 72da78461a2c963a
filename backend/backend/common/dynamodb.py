#  Copyright 2022 Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import boto3
from typing import Optional
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from boto3.dynamodb.conditions import ConditionBase
from aws_lambda_powertools.utilities.parser import ValidationError
from common.constants import INDEX_TABLE_HASH_KEY
from customLogging.logger import safeLogger
from models.common import ConditionalWriteError, StoreTransportError
from models.indexing import IndexerConfig, IndexRecord, RecordLookupResult

logger = safeLogger(service_name="DynamoDBCommon")

# Configure AWS clients with retry configuration
retry_config = Config(
    retries={
        'max_attempts': 5,
        'mode': 'adaptive'
    }
)


def create_index_table(config: IndexerConfig) -> "IndexTable":
    dynamodb = boto3.resource('dynamodb', region_name=config.region, config=retry_config)
    return IndexTable(dynamodb.Table(config.table_name))


class IndexTable:
    """Point reads and writes against the bucket index table, keyed by filename"""

    def __init__(self, table):
        self.table = table

    @property
    def name(self) -> str:
        return self.table.name

    def get_record(self, filename: str) -> RecordLookupResult:
        """
        Check for an existing entry for the given filename
        :param filename: full path and filename of the object
        :return: lookup result carrying the stored record when present
        """
        logger.info(f"Check for existing file {filename}")
        try:
            # Upsert decisions depend on the latest write, never read stale data
            response = self.table.get_item(
                Key={INDEX_TABLE_HASH_KEY: filename},
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreTransportError("get", filename, e) from e
        logger.debug(response)

        item = response.get('Item')
        if item is None:
            return RecordLookupResult(exists=False)

        try:
            record = IndexRecord.from_item(item)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise StoreTransportError("get", filename, f"unreadable item {item}") from e
        return RecordLookupResult(exists=True, record=record)

    def put_record(self, record: IndexRecord, condition: Optional[ConditionBase] = None):
        """
        Write the full record, replacing any existing entry
        :param record: record to store
        :param condition: optional condition the stored entry must satisfy for the write to apply
        """
        request = {
            'Item': record.to_item(),
            'ReturnValues': 'NONE',
        }
        if condition is not None:
            request['ConditionExpression'] = condition
        logger.debug(request)

        try:
            response = self.table.put_item(**request)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise ConditionalWriteError(record.filename, e) from e
            raise StoreTransportError("put", record.filename, e) from e
        except BotoCoreError as e:
            raise StoreTransportError("put", record.filename, e) from e
        logger.debug(response)

    def delete_record(self, filename: str):
        """Delete any entry for the filename; a missing entry is not an error"""
        try:
            response = self.table.delete_item(Key={INDEX_TABLE_HASH_KEY: filename})
        except (ClientError, BotoCoreError) as e:
            raise StoreTransportError("delete", filename, e) from e
        logger.debug(response)
