"""
OAuth redirect page.

The provider redirects the popup here. The page posts exactly one message
to window.opener, targeted at the application origin, and closes itself.
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

import settings

logger = logging.getLogger(__name__)

router = APIRouter()

CALLBACK_PAGE = """<!DOCTYPE html>
<html>
    <head><title>{title}</title></head>
    <body>
        <p>{title}. This window will close automatically.</p>
        <script>
            (function() {{
                var payload = {payload};
                if (window.opener) {{
                    window.opener.postMessage(payload, {target_origin});
                }}
                window.close();
            }})();
        </script>
    </body>
</html>
"""


def _script_json(value: Any) -> str:
    """JSON that cannot break out of a <script> element"""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def build_callback_payload(
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    error_description: Optional[str],
) -> Dict[str, Any]:
    """Message the redirect page posts to its opener"""
    if error:
        message = f"{error}: {error_description}" if error_description else error
        return {"type": "oauth_error", "error": message}
    if not code:
        return {"type": "oauth_error", "error": "Missing authorization code in callback"}
    return {"type": "oauth_success", "code": code, "state": state}


def render_callback_page(payload: Dict[str, Any], target_origin: str) -> str:
    success = payload.get("type") == "oauth_success"
    return CALLBACK_PAGE.format(
        title="Authentication complete" if success else "Authentication failed",
        payload=_script_json(payload),
        target_origin=_script_json(target_origin),
    )


@router.get(settings.REDIRECT_PATH, response_class=HTMLResponse)
async def oauth_callback(request: Request):
    """Redirect target registered with both providers"""
    params = request.query_params
    payload = build_callback_payload(
        params.get("code"),
        params.get("state"),
        params.get("error"),
        params.get("error_description"),
    )
    if payload["type"] == "oauth_error":
        logger.warning(f"OAuth callback reported an error: {payload['error']}")
    else:
        logger.info("OAuth callback received an authorization code")

    return HTMLResponse(render_callback_page(payload, settings.APP_ORIGIN))
