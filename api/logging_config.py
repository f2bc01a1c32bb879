"""
Logging setup: stdlib logging with a per-request id on every record.

The id comes from the X-Request-ID header when the caller sends one and is
echoed back on the response, so client and server logs can be joined.
"""
import logging
import uuid

from flask import g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
        else:
            record.request_id = "-"
        return True


def configure_logging(app) -> None:
    level = app.config.get("LOG_LEVEL", "INFO")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    # one handler per process even when create_app() runs many times (tests)
    for existing in list(root.handlers):
        if getattr(existing, "_request_id_handler", False):
            root.removeHandler(existing)
    handler._request_id_handler = True
    root.addHandler(handler)
    root.setLevel(level)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

    @app.after_request
    def echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response
