"""
Scheduled report handler.

EventBridge rules invoke this with {"report": "daily", "scheduled": true}
(every day) or {"report": "weekly", "scheduled": true} (Saturdays at
midnight). The Django settings module must be importable from the package.
"""
import json
import logging
import os

import django

from aws_lib.exceptions import AWSError

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "zedbites.settings")
django.setup()

from kitchen.context import kitchen_context  # noqa: E402  needs django.setup()
from kitchen.exceptions import KitchenError  # noqa: E402

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def response(status, body):
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def lambda_handler(event, context):
    event = event or {}
    report = event.get("report", "daily")
    logger.info("Report event: %s", json.dumps(event, default=str))

    try:
        job = kitchen_context().report_job(report)
        result = job.run(scheduled=bool(event.get("scheduled")), manual=bool(event.get("manual")))
    except KitchenError as e:
        logger.error("Rejected report event: %s", e)
        return response(e.status, {"error": e.message})
    except AWSError as e:
        logger.error("Error in %s report job: %s", report, e)
        return response(500, {"error": str(e)})

    return response(200, result.to_json())
