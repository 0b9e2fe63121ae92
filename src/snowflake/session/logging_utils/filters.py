#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging

from ..secret_detector import SecretDetector


def add_filter_to_logger_and_children(
    base_logger_name: str, filter_instance: logging.Filter
) -> None:
    # Ensure the base logger exists and apply filter
    base_logger = logging.getLogger(base_logger_name)
    if filter_instance not in base_logger.filters:
        base_logger.addFilter(filter_instance)

    all_loggers_pairs = logging.root.manager.loggerDict.items()
    for name, obj in all_loggers_pairs:
        if not name.startswith(base_logger_name + "."):
            continue

        if not isinstance(obj, logging.Logger):
            continue  # Skip placeholders

        if filter_instance not in obj.filters:
            obj.addFilter(filter_instance)


class SecretMaskingFilter(logging.Filter):
    """A logging filter that masks tokens and passwords in log messages.

    Filters do not propagate down the logger hierarchy, use
    `add_filter_to_logger_and_children` to cover the whole package. The
    message is formatted early and `record.args` is cleared, so this should
    be the last filter in the chain.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
            masked_data = SecretDetector.mask_secrets(message)
            record.msg = masked_data.masked_text
        except Exception as ex:
            record.msg = SecretDetector.create_formatting_error_log(
                record, "EXCEPTION - " + str(ex)
            )
        finally:
            record.args = ()  # Avoid format re-application of formatting

        return True  # allow all logs through


# loggers of the http stack that may see tokens in urls and headers
MODULES_TO_MASK_LOGS_NAMES = [
    "urllib3",
    "requests",
]


def add_filters_to_external_loggers() -> None:
    for module_name in MODULES_TO_MASK_LOGS_NAMES:
        add_filter_to_logger_and_children(module_name, SecretMaskingFilter())
