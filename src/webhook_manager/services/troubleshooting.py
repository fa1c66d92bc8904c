"""Static failure guidance for webhook probes.

Guidance is data: every entry is keyed by ``(FailurePoint, status_code)``. Client
errors with bespoke advice (400/401/403/404/422) use their exact status code; every
other classification is keyed with ``None`` and acts as the per-class default.
"""
from __future__ import annotations

from dataclasses import dataclass

from webhook_manager.domain.enums import FailurePoint
from webhook_manager.domain.models import Troubleshooting


@dataclass(frozen=True)
class Guidance:
    stage: str
    suggestion: str
    troubleshooting: Troubleshooting


GuidanceKey = tuple[FailurePoint, int | None]


def _guide(
    stage: str,
    suggestion: str,
    *,
    causes: list[str],
    actions: list[str],
    solutions: list[str],
    docs: list[str] | None = None,
) -> Guidance:
    return Guidance(
        stage=stage,
        suggestion=suggestion,
        troubleshooting=Troubleshooting(
            common_causes=causes,
            immediate_actions=actions,
            long_term_solutions=solutions,
            related_docs=docs or [],
        ),
    )


_WEBHOOK_DOCS = "https://kontent.ai/learn/docs/webhooks"

GUIDANCE: dict[GuidanceKey, Guidance] = {
    (FailurePoint.CONNECTION, None): _guide(
        "connection",
        "Verify the webhook URL host is correct and the endpoint is reachable from the internet.",
        causes=[
            "Hostname cannot be resolved (DNS)",
            "Endpoint server is down or not listening",
            "Firewall or network policy blocks inbound requests",
        ],
        actions=[
            "Check the webhook URL for typos",
            "Open the URL host from another network to confirm it resolves",
            "Confirm the receiving service is running",
        ],
        solutions=[
            "Use a stable, publicly resolvable hostname",
            "Monitor endpoint uptime",
            "Allow-list the platform's outbound IP ranges",
        ],
        docs=[_WEBHOOK_DOCS],
    ),
    (FailurePoint.TIMEOUT, None): _guide(
        "request",
        "The endpoint did not answer in time; respond quickly and process the payload asynchronously.",
        causes=[
            "Endpoint performs slow work before responding",
            "Server is overloaded",
            "Network latency or packet loss",
        ],
        actions=[
            "Check endpoint logs for slow requests",
            "Return a 2xx response before doing heavy processing",
            "Retry the test once the server load drops",
        ],
        solutions=[
            "Queue incoming webhooks and process them in the background",
            "Scale the receiving service",
            "Add response time monitoring",
        ],
        docs=[_WEBHOOK_DOCS],
    ),
    (FailurePoint.NETWORK, None): _guide(
        "network",
        "A network error interrupted the request; check TLS configuration and connectivity.",
        causes=[
            "Connection reset by peer",
            "TLS handshake failure or invalid certificate",
            "Proxy or load balancer dropped the request",
        ],
        actions=[
            "Verify the endpoint certificate is valid and trusted",
            "Retry the test",
            "Inspect proxy and load balancer logs",
        ],
        solutions=[
            "Keep certificates renewed automatically",
            "Use HTTPS endpoints with a standard certificate chain",
            "Review network infrastructure between platform and endpoint",
        ],
    ),
    (FailurePoint.VALIDATION, None): _guide(
        "configuration",
        "The webhook URL could not be used for a request; correct the URL in the webhook settings.",
        causes=[
            "URL is malformed",
            "Unsupported URL scheme",
            "URL contains invalid characters",
        ],
        actions=[
            "Edit the webhook and re-enter the URL",
            "Use a full http:// or https:// URL",
            "Encode special characters in the path and query",
        ],
        solutions=[
            "Validate endpoint URLs before saving",
            "Keep endpoint URLs in configuration management",
            "Prefer HTTPS endpoints",
        ],
    ),
    (FailurePoint.CLIENT_ERROR, 400): _guide(
        "request_validation",
        "The endpoint rejected the payload as a bad request; make sure it accepts JSON webhook bodies.",
        causes=[
            "Endpoint expects a different payload format",
            "Required headers are missing",
            "Endpoint validation is too strict",
        ],
        actions=[
            "Compare the test payload with what the endpoint expects",
            "Check endpoint logs for the validation error",
            "Add any headers the endpoint requires as custom headers",
        ],
        solutions=[
            "Accept the platform's webhook payload schema",
            "Log rejected payloads for diagnosis",
            "Version the endpoint contract",
        ],
    ),
    (FailurePoint.AUTHENTICATION, 401): _guide(
        "authentication",
        "The endpoint requires authentication; add the expected credentials as a custom header.",
        causes=[
            "Missing Authorization or API key header",
            "Credential is expired or revoked",
            "Signature verification failed",
        ],
        actions=[
            "Add the required authentication header to the webhook",
            "Regenerate the credential on the receiving service",
            "Check the endpoint's authentication logs",
        ],
        solutions=[
            "Rotate webhook credentials on a schedule",
            "Use signature verification instead of static secrets",
            "Document the endpoint authentication scheme",
        ],
        docs=[_WEBHOOK_DOCS],
    ),
    (FailurePoint.AUTHORIZATION, 403): _guide(
        "authorization",
        "The endpoint refused access; grant the webhook credentials permission or allow-list the caller.",
        causes=[
            "Credential lacks permission for this resource",
            "IP allow-list blocks the caller",
            "Web application firewall blocked the request",
        ],
        actions=[
            "Check the permissions attached to the credential",
            "Review IP allow-lists and firewall rules",
            "Inspect WAF logs for blocked requests",
        ],
        solutions=[
            "Create a dedicated credential for webhook delivery",
            "Allow-list the platform's outbound IP ranges",
            "Exempt the webhook path from WAF rules that block JSON POSTs",
        ],
    ),
    (FailurePoint.CLIENT_ERROR, 404): _guide(
        "routing",
        "The endpoint path was not found; check the URL path and that the route accepts POST requests.",
        causes=[
            "Typo in the URL path",
            "Endpoint was moved or removed",
            "Route exists but not for POST",
        ],
        actions=[
            "Verify the full URL including path",
            "Check the receiving application's routes",
            "Confirm the deployment serving the route is live",
        ],
        solutions=[
            "Keep webhook routes stable across deployments",
            "Redirect or alias old webhook paths",
            "Add a health check for the webhook route",
        ],
    ),
    (FailurePoint.CLIENT_ERROR, 422): _guide(
        "payload_validation",
        "The endpoint could not process the payload; relax validation for test payloads or fix the schema.",
        causes=[
            "Payload fields do not match the expected schema",
            "Endpoint rejects test payloads",
            "Semantic validation failed",
        ],
        actions=[
            "Read the response body for the failing field",
            "Allow payloads with the X-Webhook-Test header",
            "Align the endpoint schema with the webhook payload",
        ],
        solutions=[
            "Handle test deliveries explicitly",
            "Share payload schemas between sender and receiver",
            "Add contract tests for the webhook endpoint",
        ],
    ),
    (FailurePoint.CLIENT_ERROR, None): _guide(
        "client_error",
        "The endpoint rejected the request; review the response body and endpoint requirements.",
        causes=[
            "Endpoint does not accept this request",
            "Method or content type not allowed",
            "Rate limiting on the endpoint",
        ],
        actions=[
            "Read the response body for details",
            "Check allowed methods and content types",
            "Retry later if the endpoint rate-limits requests",
        ],
        solutions=[
            "Agree on the webhook contract with the endpoint owner",
            "Monitor 4xx responses on the endpoint",
            "Raise endpoint rate limits for webhook traffic",
        ],
    ),
    (FailurePoint.SERVER_ERROR, None): _guide(
        "server_error",
        "The endpoint failed while handling the request; check its server logs.",
        causes=[
            "Unhandled exception in the endpoint",
            "Dependency of the endpoint is down",
            "Endpoint is overloaded or restarting",
        ],
        actions=[
            "Check the endpoint's error logs",
            "Verify downstream services are healthy",
            "Retry the test after the endpoint recovers",
        ],
        solutions=[
            "Add error monitoring and alerting to the endpoint",
            "Make webhook handling idempotent and retry-safe",
            "Scale the endpoint for peak traffic",
        ],
    ),
    (FailurePoint.UNKNOWN, None): _guide(
        "unknown",
        "An unexpected error occurred while testing; retry and contact support if it persists.",
        causes=[
            "Unexpected error in the test run",
            "Unrecognised response from the endpoint",
            "Transient platform issue",
        ],
        actions=[
            "Retry the test",
            "Check the webhook configuration",
            "Review the error message for details",
        ],
        solutions=[
            "Report recurring errors with the test result id",
            "Monitor the endpoint independently",
            "Keep webhook configuration minimal",
        ],
    ),
}


def lookup_guidance(failure_point: FailurePoint, status_code: int | None = None) -> Guidance:
    """Return guidance for a failure, preferring the exact status code over the class default."""
    if status_code is not None:
        exact = GUIDANCE.get((failure_point, status_code))
        if exact is not None:
            return exact
    return GUIDANCE.get((failure_point, None), GUIDANCE[(FailurePoint.UNKNOWN, None)])
