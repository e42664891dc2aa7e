import logging
from typing import Any

import httpx

from . import config
from .http_utils import retry_with_backoff

logger = logging.getLogger(__name__)


def _make_client() -> httpx.Client:
    return httpx.Client(timeout=config.REQUEST_TIMEOUT_SECONDS)


def _build_request_params(
    access_token: str,
    method: str,
    path: str,
    body: dict[str, Any] | None,
    query_params: dict[str, Any] | None,
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "method": method,
        "url": f"{config.GRAPH_API_ENDPOINT}/{path.lstrip('/')}",
        "headers": {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        },
    }
    if query_params:
        params["params"] = query_params
    if body is not None:
        params["json"] = body
    return params


def _execute_request(
    client: httpx.Client, request_params: dict[str, Any]
) -> httpx.Response:
    logger.debug(f"Graph request: {request_params['method']} {request_params['url']}")
    response = client.request(**request_params)
    response.raise_for_status()
    logger.debug(f"Graph response: {response.status_code}")
    return response


def _parse_response(response: httpx.Response) -> dict[str, Any] | None:
    if response.status_code == 204 or not response.content:
        return None
    return response.json()


def call_graph_api(
    access_token: str,
    method: str,
    path: str,
    body: dict[str, Any] | None = None,
    query_params: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Call a Microsoft Graph endpoint and return the parsed JSON body.

    Args:
        access_token: Bearer token from ``auth.ensure_authenticated``.
        method: HTTP method.
        path: Path relative to the Graph root, e.g. ``"me/calendar/events"``.
        body: JSON body for POST/PATCH requests.
        query_params: Query string parameters such as ``$select`` or ``$top``.

    Returns:
        The decoded JSON response, or None for empty (204) responses.

    Raises:
        GraphAPIError: On any HTTP or network failure. The message embeds
            the HTTP status, e.g. "API call failed with status 404: ...".
    """
    request_params = _build_request_params(
        access_token, method, path, body, query_params
    )

    def make_request() -> dict[str, Any] | None:
        with _make_client() as client:
            response = _execute_request(client, request_params)
            return _parse_response(response)

    return retry_with_backoff(make_request)
