# Copyright 2023 Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import List, Optional


#Define index synchronization exceptions

class IndexSyncError(Exception):
    pass


class IndexerConfigurationError(IndexSyncError):
    pass


class MalformedNotificationError(IndexSyncError):
    def __init__(self, message):
        super().__init__(f"Malformed bucket notification: {message}")


class KeyDecodingError(IndexSyncError):
    def __init__(self, raw_key, reason):
        super().__init__(f"Unable to decode object key {raw_key!r}: {reason}")
        self.raw_key = raw_key


class UnsupportedActionError(IndexSyncError):
    def __init__(self, event_name, filename=None):
        super().__init__(f"Unsupported bucket action {event_name}")
        self.event_name = event_name
        self.filename = filename


class StoreTransportError(IndexSyncError):
    """Failure talking to the index table (throttling, permissions, timeouts, bad responses)"""

    def __init__(self, operation, filename, cause=None):
        message = f"Index table {operation} failed for {filename}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.filename = filename


class ConditionalWriteError(StoreTransportError):
    def __init__(self, filename, cause=None):
        super().__init__("conditional put", filename, cause)


class ConcurrentModificationError(IndexSyncError):
    def __init__(self, filename, attempts):
        super().__init__(f"Index record for {filename} kept changing, gave up after {attempts} attempts")
        self.filename = filename
        self.attempts = attempts


class IndexSynchronizationError(IndexSyncError):
    """Raised at the dispatch boundary when failures must be surfaced to the invoking service"""

    def __init__(self, failed_keys: List[Optional[str]]):
        keys = ", ".join(k if k is not None else "<unknown>" for k in failed_keys)
        super().__init__(f"{len(failed_keys)} index operation(s) failed: {keys}")
        self.failed_keys = failed_keys
