# Copyright 2023 Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

#Keys ending with the separator are folder markers, not objects
PATH_SEPARATOR = "/"

#S3 notification event name categories
#See https://docs.aws.amazon.com/AmazonS3/latest/userguide/notification-how-to-event-types-and-destinations.html#supported-notification-event-types
OBJECT_CREATED_EVENT_PREFIX = "ObjectCreated"
OBJECT_REMOVED_EVENT_PREFIX = "ObjectRemoved"

#Sent once by S3 when a notification configuration is saved
S3_TEST_EVENT = "s3:TestEvent"

#Event sources of the envelopes a bucket notification can arrive in
S3_EVENT_SOURCE = "aws:s3"
SQS_EVENT_SOURCE = "aws:sqs"
SNS_EVENT_SOURCE = "aws:sns"

INDEX_TABLE_HASH_KEY = "filename"
