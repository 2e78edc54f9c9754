import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Mapping, Optional


class HttpError(Exception):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"HTTP Error {status}: {body}")
        self.status = status
        self.body = body


async def request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    json_data: Optional[Dict[str, Any]] = None,
    form_data: Optional[Mapping[str, str]] = None,
    timeout: float = 10.0,
    parse_json: bool = True,
) -> Any:
    """
    Executes an HTTP request asynchronously using a thread executor.

    ``form_data`` is sent as ``application/x-www-form-urlencoded``. With
    ``parse_json=False`` the decoded response text is returned as-is.
    """
    headers = dict(headers or {})

    data = None
    if json_data is not None:
        data = json.dumps(json_data).encode("utf-8")
        headers["Content-Type"] = "application/json"
    elif form_data is not None:
        data = urllib.parse.urlencode(list(form_data.items())).encode("utf-8")
        headers["Content-Type"] = "application/x-www-form-urlencoded"

    if parse_json and "Accept" not in headers:
        headers["Accept"] = "application/json"

    req = urllib.request.Request(url, data=data, headers=headers, method=method)

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _perform_request, req, timeout, parse_json)


def _perform_request(req: urllib.request.Request, timeout: float, parse_json: bool) -> Any:
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raise HttpError(e.code, e.read().decode("utf-8", errors="replace")) from e

    if not parse_json:
        return body
    if not body:
        return None
    return json.loads(body)
