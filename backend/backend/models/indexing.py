"""
Bucket index models: S3 notification records, index table records and indexer configuration.
Copyright 2024 Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import os
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from pydantic import Field, model_validator
from aws_lambda_powertools.utilities.parser import BaseModel, ValidationError
from customLogging.logger import safeLogger
from models.common import IndexerConfigurationError

logger = safeLogger(service_name="BucketIndexModels")

######################## S3 Notification Models ##########################

class S3BucketModel(BaseModel, extra='ignore'):
    name: str = ""
    arn: Optional[str] = None


class S3ObjectModel(BaseModel, extra='ignore'):
    key: str = Field(..., min_length=1, description="URL-encoded object key")
    # Absent on ObjectRemoved events
    size: Optional[int] = Field(None, ge=0)
    eTag: Optional[str] = None
    versionId: Optional[str] = None
    sequencer: Optional[str] = None


class S3EntityModel(BaseModel, extra='ignore'):
    bucket: S3BucketModel = Field(default_factory=S3BucketModel)
    object: S3ObjectModel


class S3NotificationRecordModel(BaseModel, extra='ignore'):
    """Slice of an S3 event notification record used for indexing"""
    eventSource: str = "aws:s3"
    eventName: str = Field(..., min_length=1)
    eventTime: Optional[str] = None
    awsRegion: Optional[str] = None
    s3: S3EntityModel


######################## Classification ##########################

class IndexAction(str, Enum):
    SKIP = "skip"
    UPSERT = "upsert"
    DELETE = "delete"
    UNSUPPORTED = "unsupported"


class ClassifiedNotification(BaseModel, extra='ignore'):
    action: IndexAction
    filename: str
    eventName: str
    bucketName: str = ""
    size: Optional[int] = Field(None, ge=0)


######################## Index Table Models ##########################

def _to_int(value: Any) -> int:
    # DynamoDB numbers come back from the resource layer as Decimal
    if isinstance(value, Decimal) and value != value.to_integral_value():
        raise ValueError(f"Expected an integer, got {value}")
    return int(value)


class IndexRecord(BaseModel, extra='ignore'):
    """One row of the bucket index table, keyed by the full object key"""
    filename: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    created: int = Field(..., ge=0, description="Epoch milliseconds of the first index write")
    last_modified: int = Field(..., ge=0, description="Epoch milliseconds of the latest index write")

    @model_validator(mode='after')
    def check_timestamps(self):
        if self.last_modified < self.created:
            raise ValueError("last_modified must not precede created")
        return self

    def to_item(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'size': self.size,
            'created': self.created,
            'last_modified': self.last_modified,
        }

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "IndexRecord":
        return cls(
            filename=item['filename'],
            size=_to_int(item['size']),
            created=_to_int(item['created']),
            last_modified=_to_int(item['last_modified']),
        )


class RecordLookupResult(BaseModel):
    exists: bool
    record: Optional[IndexRecord] = None


class IndexOperationResponse(BaseModel, extra='ignore'):
    """Response model for a single index operation"""
    success: bool = Field(..., description="Whether operation was successful")
    message: str = Field(..., description="Operation result message")
    filename: Optional[str] = Field(None, description="Object key the operation applied to")
    indexName: str = Field(..., description="Target index table name")
    operation: str = Field(..., description="Operation performed")
    record: Optional[IndexRecord] = Field(None, description="Record written, for inserts and updates")


######################## Configuration ##########################

class WriteStrategy(str, Enum):
    OVERWRITE = "overwrite"
    CONDITIONAL = "conditional"


class ErrorPolicy(str, Enum):
    LOG = "log"
    RAISE = "raise"


class IndexerConfig(BaseModel, frozen=True, extra='forbid'):
    """Process-wide indexer settings, resolved once at cold start"""
    table_name: str = Field(..., min_length=1)
    region: Optional[str] = None
    write_strategy: WriteStrategy = WriteStrategy.OVERWRITE
    error_policy: ErrorPolicy = ErrorPolicy.LOG
    conditional_write_attempts: int = Field(3, ge=1, le=10)

    @classmethod
    def from_environment(cls, env: Mapping[str, str] = os.environ) -> "IndexerConfig":
        """
        Build the configuration from Lambda environment variables.

        The INDEX_* variables take precedence; DYNAMO_TABLE_ARN and DYNAMO_TABLE_REGION are
        honoured for stacks deployed before the rename.
        """
        table_name = env.get('INDEX_STORAGE_TABLE_NAME') or env.get('DYNAMO_TABLE_ARN')
        if not table_name:
            raise IndexerConfigurationError("INDEX_STORAGE_TABLE_NAME is not configured")

        values = {
            'table_name': table_name,
            'region': env.get('INDEX_STORAGE_TABLE_REGION') or env.get('DYNAMO_TABLE_REGION') or env.get('AWS_REGION'),
        }
        optional = {
            'write_strategy': env.get('INDEX_WRITE_STRATEGY'),
            'error_policy': env.get('INDEX_ERROR_POLICY'),
            'conditional_write_attempts': env.get('INDEX_CONDITIONAL_WRITE_ATTEMPTS'),
        }
        for field, value in optional.items():
            if value:
                values[field] = value.strip().lower() if field != 'conditional_write_attempts' else value.strip()

        try:
            config = cls(**values)
        except ValidationError as e:
            raise IndexerConfigurationError(f"Invalid indexer configuration: {e}") from e

        logger.info(f"Indexer configured for table {config.table_name} "
                    f"(strategy={config.write_strategy.value}, errors={config.error_policy.value})")
        return config
