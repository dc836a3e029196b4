"""Gateway error taxonomy. Each error knows the HTTP status it is reported with."""


class GatewayError(Exception):
    status_code = 500
    code = "GATEWAY_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.details = details


class UnknownRouteError(GatewayError):
    status_code = 400
    code = "INVALID_API_ID"


class MissingParameterError(GatewayError):
    status_code = 400
    code = "MISSING_PARAMETER"


class InvalidParameterError(GatewayError):
    status_code = 403
    code = "INVALID_PARAMETER"


class RateLimitedError(GatewayError):
    status_code = 429
    code = "RATE_LIMITED"


class UpstreamError(GatewayError):
    status_code = 502
    code = "UPSTREAM_ERROR"
