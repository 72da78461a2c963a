"""
Bucket indexer for the S3 object index table.
Keeps one DynamoDB record per object key in sync with S3 bucket notifications:
uploads and overwrites upsert the record, removals delete it, folder markers are ignored.

Copyright 2024 Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import json
import re
import time
import urllib.parse
from typing import Any, Callable, Dict, List, Optional
from boto3.dynamodb.conditions import Attr
from aws_lambda_powertools.utilities.typing import LambdaContext
from aws_lambda_powertools.utilities.parser import parse, ValidationError
from common.constants import (
    PATH_SEPARATOR, OBJECT_CREATED_EVENT_PREFIX, OBJECT_REMOVED_EVENT_PREFIX,
    S3_TEST_EVENT, S3_EVENT_SOURCE, SQS_EVENT_SOURCE, SNS_EVENT_SOURCE, INDEX_TABLE_HASH_KEY
)
from common.dynamodb import IndexTable, create_index_table
from customLogging.logger import safeLogger
from models.common import (
    MalformedNotificationError, KeyDecodingError, UnsupportedActionError,
    ConditionalWriteError, ConcurrentModificationError, IndexSynchronizationError
)
from models.indexing import (
    S3NotificationRecordModel, ClassifiedNotification, IndexAction, IndexRecord,
    RecordLookupResult, IndexOperationResponse, IndexerConfig, WriteStrategy, ErrorPolicy
)

logger = safeLogger(service_name="BucketIndexer")

operation_verbs = {'insert': 'Inserted', 'update': 'Updated'}

# A '%' that does not start a two digit hex escape
malformed_escape_pattern = re.compile(r'%(?![0-9A-Fa-f]{2})')

# Load environment variables with error handling
try:
    indexer_config = IndexerConfig.from_environment()
except Exception as e:
    logger.exception("Failed loading environment variables")
    raise e

# Built on first invocation so the DynamoDB resource is created inside the handler's lifetime
indexer = None


def current_time_millis() -> int:
    return int(time.time() * 1000)

#######################
# Notification Classification
#######################

def decode_object_key(raw_key: str) -> str:
    """S3 keys arrive URL encoded with '+' standing in for spaces"""
    if malformed_escape_pattern.search(raw_key):
        raise KeyDecodingError(raw_key, "malformed percent escape")
    try:
        return urllib.parse.unquote_plus(raw_key, errors='strict')
    except UnicodeDecodeError as e:
        raise KeyDecodingError(raw_key, "escapes are not valid UTF-8") from e


def classify_notification(record: Dict[str, Any]) -> ClassifiedNotification:
    """
    Decode the object key of one S3 notification record and decide what the index should do with it.

    Args:
        record: A single entry of an S3 notification's Records list

    Returns:
        ClassifiedNotification with the action, decoded key and, for uploads, the object size
    """
    try:
        notification = parse(event=record, model=S3NotificationRecordModel)
    except ValidationError as e:
        raise MalformedNotificationError(str(e)) from e

    event_name = notification.eventName
    filename = decode_object_key(notification.s3.object.key)
    if not filename:
        raise MalformedNotificationError("object key is empty")

    classified = {
        'filename': filename,
        'eventName': event_name,
        'bucketName': notification.s3.bucket.name,
    }

    # Skip all folders, all files are indexed by full path
    if filename.endswith(PATH_SEPARATOR):
        return ClassifiedNotification(action=IndexAction.SKIP, **classified)

    if event_name.startswith(OBJECT_CREATED_EVENT_PREFIX):
        if notification.s3.object.size is None:
            raise MalformedNotificationError(f"{event_name} for {filename} has no object size")
        return ClassifiedNotification(action=IndexAction.UPSERT, size=notification.s3.object.size, **classified)

    if event_name.startswith(OBJECT_REMOVED_EVENT_PREFIX):
        return ClassifiedNotification(action=IndexAction.DELETE, **classified)

    return ClassifiedNotification(action=IndexAction.UNSUPPORTED, **classified)

#######################
# Envelope Handling
#######################

def _load_message(message: Any, source: str) -> Dict[str, Any]:
    if isinstance(message, dict):
        return message
    try:
        decoded = json.loads(message)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedNotificationError(f"{source} message is not JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise MalformedNotificationError(f"{source} message is not a JSON object: {message!r}")
    return decoded


def extract_s3_records(event: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Flatten an invocation payload into S3 notification records.

    Bucket notifications reach the indexer directly from S3, or wrapped by SQS and/or SNS when
    the bucket fans out to several consumers. Records without a recognised envelope source are
    returned as-is and validated during classification.
    """
    if event.get('Event') == S3_TEST_EVENT:
        logger.info(f"Ignoring S3 test event for bucket {event.get('Bucket')}")
        return []

    # SNS notification delivered through SQS
    if event.get('Type') == 'Notification' and 'Message' in event:
        return extract_s3_records(_load_message(event['Message'], "SNS"))

    records = []
    for record in event.get('Records', []):
        if not isinstance(record, dict):
            raise MalformedNotificationError(f"record is not an object: {record!r}")
        event_source = record.get('eventSource') or record.get('EventSource', '')

        if event_source == SQS_EVENT_SOURCE:
            records.extend(extract_s3_records(_load_message(record.get('body'), "SQS")))
        elif event_source == SNS_EVENT_SOURCE:
            sns = record.get('Sns')
            if not isinstance(sns, dict):
                raise MalformedNotificationError(f"SNS record has no notification: {sns!r}")
            records.extend(extract_s3_records(_load_message(sns.get('Message'), "SNS")))
        else:
            if event_source and event_source != S3_EVENT_SOURCE:
                logger.warning(f"Unknown event source: {event_source}")
            records.append(record)
    return records

#######################
# Index Synchronization
#######################

class BucketIndexer:
    """Reconciles index table records with S3 object notifications"""

    def __init__(self, config: IndexerConfig, index_table: IndexTable,
                 clock: Callable[[], int] = current_time_millis):
        self.config = config
        self.index_table = index_table
        self.clock = clock

    def lookup(self, filename: str) -> RecordLookupResult:
        return self.index_table.get_record(filename)

    def upsert(self, filename: str, size: int) -> IndexOperationResponse:
        """
        Create the record for a new object, or replace it for an overwritten one keeping its created time.

        With the conditional write strategy each write only applies if the record still looks the way
        the lookup saw it; on a lost race the lookup and write are retried.
        """
        logger.info(f"Upsert {filename} into index")
        conditional = self.config.write_strategy == WriteStrategy.CONDITIONAL
        attempts = self.config.conditional_write_attempts if conditional else 1

        for attempt in range(1, attempts + 1):
            lookup = self.lookup(filename)
            now = self.clock()

            if not lookup.exists:
                logger.info(f"Create item {filename} in index")
                record = IndexRecord(filename=filename, size=size, created=now, last_modified=now)
                operation = "insert"
                condition = Attr(INDEX_TABLE_HASH_KEY).not_exists()
            else:
                logger.info(f"Update item {filename} in index")
                existing = lookup.record
                record = IndexRecord(
                    filename=filename,
                    size=size,
                    created=existing.created,
                    last_modified=max(now, existing.last_modified, existing.created)
                )
                operation = "update"
                condition = Attr('created').eq(existing.created) & Attr('last_modified').eq(existing.last_modified)

            try:
                self.index_table.put_record(record, condition=condition if conditional else None)
            except ConditionalWriteError:
                logger.warning(f"Index record for {filename} changed during upsert (attempt {attempt} of {attempts})")
                continue

            return IndexOperationResponse(
                success=True,
                message=f"{operation_verbs[operation]} index record",
                filename=filename,
                indexName=self.index_table.name,
                operation=operation,
                record=record
            )

        raise ConcurrentModificationError(filename, attempts)

    def delete(self, filename: str) -> IndexOperationResponse:
        logger.info(f"Delete {filename} from index")
        self.index_table.delete_record(filename)
        return IndexOperationResponse(
            success=True,
            message="Deleted index record",
            filename=filename,
            indexName=self.index_table.name,
            operation="delete"
        )

    def process_record(self, record: Dict[str, Any]) -> IndexOperationResponse:
        classified = classify_notification(record)

        if classified.action == IndexAction.SKIP:
            logger.info(f"Skipping folder marker: {classified.filename}")
            return IndexOperationResponse(
                success=True,
                message="Skipped folder marker",
                filename=classified.filename,
                indexName=self.index_table.name,
                operation="skip"
            )
        if classified.action == IndexAction.UPSERT:
            return self.upsert(classified.filename, classified.size)
        if classified.action == IndexAction.DELETE:
            return self.delete(classified.filename)

        raise UnsupportedActionError(classified.eventName, classified.filename)

    def _error_response(self, error: Exception, filename: Optional[str] = None) -> IndexOperationResponse:
        return IndexOperationResponse(
            success=False,
            message=str(error),
            filename=filename,
            indexName=self.index_table.name,
            operation="error"
        )

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply every bucket notification in the invocation to the index.

        Each record is handled on its own; a failure is logged and reported in the results without
        stopping the others. Under the raise error policy the failures are re-raised together once
        all records have been processed, so the invoking service can retry the delivery.
        """
        results = []

        # Unwrap each delivered record separately so one bad envelope does not hide the rest
        if isinstance(event.get('Records'), list):
            envelopes = [{'Records': [record]} for record in event['Records']]
        else:
            envelopes = [event]

        for envelope in envelopes:
            try:
                s3_records = extract_s3_records(envelope)
            except Exception as e:
                logger.exception(f"Error unwrapping notification: {e}")
                results.append(self._error_response(e))
                continue

            for record in s3_records:
                try:
                    results.append(self.process_record(record))
                except Exception as e:
                    logger.exception(f"Error indexing bucket notification: {e}")
                    results.append(self._error_response(e, getattr(e, 'filename', None)))

        if not results:
            logger.warning("No bucket notification records found in event")

        failures = [r for r in results if not r.success]
        if failures and self.config.error_policy == ErrorPolicy.RAISE:
            raise IndexSynchronizationError([r.filename for r in failures])

        successful = len(results) - len(failures)
        return {
            'message': f"Processed {successful}/{len(results)} index operations successfully",
            'results': [r.model_dump(mode='json') for r in results]
        }

#######################
# Lambda Handler
#######################

def get_indexer() -> BucketIndexer:
    global indexer
    if indexer is None:
        indexer = BucketIndexer(indexer_config, create_index_table(indexer_config))
    return indexer


@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Receives an S3 bucket event, parses the object key and upserts or deletes
    the index record as appropriate for the bucket action.
    """
    logger.debug(f"Received event: {json.dumps(event, default=str)}")

    try:
        return get_indexer().handle_event(event)
    except IndexSynchronizationError:
        # Error policy asked for the invocation to fail so it gets redelivered
        raise
    except Exception as e:
        logger.exception(f"Internal error in bucket indexer: {e}")
        active_config = indexer.config if indexer is not None else indexer_config
        if active_config.error_policy == ErrorPolicy.RAISE:
            raise
        return {
            'message': f"Internal error: {e}",
            'results': []
        }
