# Copyright 2023 Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_lambda_powertools import Logger
from aws_lambda_powertools.logging.formatter import LambdaPowertoolsFormatter

location_format = "[%(funcName)s] %(module)s"
date_format = "%m/%d/%Y %I:%M:%S %p"

# S3 notifications carry the caller identity and source address of every write
keys_to_redact = ["authorization", "principalId", "sourceIPAddress", "x-amz-id-2"]


def mask_sensitive_data(event):
    # remove sensitive data from log records before serializing
    if isinstance(event, list):
        return [mask_sensitive_data(v) for v in event]
    if not isinstance(event, dict):
        return event

    result = {}
    for k, v in event.items():
        if k in keys_to_redact:
            result[k] = "<redacted>"
        elif isinstance(v, (dict, list)):
            result[k] = mask_sensitive_data(v)
        else:
            result[k] = v
    return result


class CustomFormatter(LambdaPowertoolsFormatter):
    def serialize(self, log: dict) -> str:
        """Serialize final structured log dict to JSON str"""
        log = mask_sensitive_data(event=log)
        return self.json_serializer(log)


def safeLogger(**kwargs):
    return Logger(
        logger_formatter=CustomFormatter(),
        location=location_format,
        datefmt=date_format,
        **kwargs)
