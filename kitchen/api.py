"""
JSON endpoints under /api/.

Every view goes through ``json_api``: it checks the caller, the method and
the body, and turns ``KitchenError``/``AWSError`` into ``{"error": ...}``
responses. CORS headers are added by django-cors-headers.
"""
import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from aws_lib.exceptions import AWSError

from .context import kitchen_context
from .exceptions import KitchenError, ValidationFailed
from .orders import log_notifier
from .recipients import DEFAULT_LOG_LIMIT
from .tracking import Position
from .models import parse_timestamp

logger = logging.getLogger(__name__)


def error(message, status):
    return JsonResponse({"error": message}, status=status)


def json_api(*methods, staff=True):
    def decorator(view):
        @csrf_exempt
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return error("Authentication required", 401)
            if staff and not request.user.is_staff:
                return error("Staff access required", 403)
            if request.method not in methods:
                response = error("Method not allowed", 405)
                response["Allow"] = ", ".join(methods)
                return response

            body = {}
            # only JSON requests carry a payload
            if request.method in ("POST", "PUT", "DELETE") and request.content_type == "application/json" and request.body:
                try:
                    body = json.loads(request.body)
                except ValueError:
                    return error("Invalid JSON body", 400)
                if not isinstance(body, dict):
                    return error("JSON body must be an object", 400)

            try:
                return view(request, body, *args, **kwargs)
            except KitchenError as e:
                return error(e.message, e.status)
            except AWSError as e:
                logger.error("%s %s failed: %s", request.method, request.path, e)
                return error(str(e), 500)
        return wrapper
    return decorator


@csrf_exempt
def not_found(request, path=""):
    return error(f"Not found: {request.path}", 404)


# -----------------------------
# Email management
# -----------------------------
@json_api("GET", "POST", "PUT", "DELETE")
def recipients(request, body):
    store = kitchen_context().recipients

    if request.method == "GET":
        return JsonResponse([r.to_json() for r in store.all()], safe=False)

    if request.method == "POST":
        if not body.get("email_type") or not body.get("recipient_email"):
            raise ValidationFailed("email_type and recipient_email are required")
        recipient = store.create(
            body["email_type"],
            body["recipient_email"],
            recipient_name=body.get("recipient_name"),
            created_by=request.user.get_username(),
        )
        return JsonResponse(recipient.to_json(), status=201)

    recipient_id = body.pop("id", None)
    if request.method == "PUT":
        return JsonResponse(store.update(recipient_id, **body).to_json())

    store.delete(recipient_id)
    return JsonResponse({"message": "Recipient deleted successfully"})


@json_api("GET")
def logs(request, body):
    raw = request.GET.get("limit")
    limit = DEFAULT_LOG_LIMIT
    if raw is not None:
        try:
            limit = int(raw)
        except ValueError:
            raise ValidationFailed("limit must be a positive integer")
        if limit <= 0:
            raise ValidationFailed("limit must be a positive integer")
    return JsonResponse([log.to_json() for log in kitchen_context().email_logs.latest(limit)], safe=False)


def _run_report(report_type, scheduled=False, manual=False):
    result = kitchen_context().report_job(report_type).run(scheduled=scheduled, manual=manual)
    return JsonResponse(result.to_json())


@json_api("POST")
def test_daily(request, body):
    return _run_report("daily", manual=True)


@json_api("POST")
def test_weekly(request, body):
    return _run_report("weekly", manual=True)


@json_api("POST")
def trigger_report(request, body, report_type):
    return _run_report(report_type, scheduled=bool(body.get("scheduled")), manual=bool(body.get("manual")))


# -----------------------------
# Orders
# -----------------------------
@json_api("GET", "POST", staff=False)
def orders(request, body):
    sync = kitchen_context().orders

    if request.method == "GET":
        failures = []

        def notify(level, text):
            log_notifier(level, text)
            if level == "error":
                failures.append(text)

        listing = sync.by_status(request.GET.get("status") or "all", notify=notify)
        payload = {"orders": [o.to_json() for o in listing]}
        if failures:
            payload["warning"] = failures[-1]
        return JsonResponse(payload)

    order = sync.create_order(
        body.get("customer_name") or "",
        body.get("items") or [],
        customer_phone=body.get("customer_phone") or "",
        customer_address=body.get("customer_address") or "",
        created_by=request.user.get_username(),
    )
    return JsonResponse(order.to_json(), status=201)


@json_api("POST", staff=False)
def order_status(request, body, order_id):
    sync = kitchen_context().orders
    if body.get("status"):
        order = sync.update_status(order_id, body["status"])
    else:
        order = sync.advance(order_id)
    return JsonResponse(order.to_json())


@json_api("POST", staff=False)
def order_location(request, body, order_id):
    """
    A position fix (or a geolocation error) from the driver's device.
    Fixes only land while a tracker is watching the order.
    """
    tracker = kitchen_context().trackers.existing(order_id)
    if tracker is None or not tracker.is_tracking:
        return error("Order is not being tracked", 409)

    if body.get("error"):
        tracker.source.fail(str(body["error"]))
        return JsonResponse({"tracking": False})

    try:
        position = Position(
            lat=float(body["lat"]),
            lng=float(body["lng"]),
            timestamp=parse_timestamp(body.get("timestamp")),
        )
    except (KeyError, TypeError, ValueError):
        raise ValidationFailed("lat and lng are required numbers")

    accepted = tracker.source.push(position)
    return JsonResponse({"tracking": tracker.is_tracking, "accepted": accepted})
