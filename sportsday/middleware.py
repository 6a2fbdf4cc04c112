"""
aiohttp middlewares: session lookup, permission checks and default headers.
"""

import logging
from typing import Awaitable, Callable

from aiohttp import web

from .database import ANONYMOUS_SESSION, DatabaseManager

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
HTML_CONTENT_TYPE = "text/html"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

# path prefix -> session attribute that must be true
PROTECTED_PREFIXES = (
    ("/admin", "has_admin"),
    ("/scores", "has_set_score"),
)


def session_middleware(db: DatabaseManager):
    """
    Build a middleware that attaches the verified session to each request
    as request["session"] and guards the admin and score entry pages.

    @param db: Database manager used to verify session cookies
    @return: aiohttp middleware
    """

    @web.middleware
    async def middleware(
        request: web.Request,
        handler: Handler,
    ) -> web.StreamResponse:
        session = ANONYMOUS_SESSION
        cookie = request.cookies.get(SESSION_COOKIE)
        if cookie:
            session = await db.verify_session(cookie)
        request["session"] = session

        for prefix, permission in PROTECTED_PREFIXES:
            if request.path == prefix or request.path.startswith(prefix + "/"):
                if not session.verified:
                    raise web.HTTPFound(f"/login?next={request.path}")
                if not getattr(session, permission):
                    logger.warning(
                        "User %s denied access to %s", session.user_id, request.path
                    )
                    raise web.HTTPForbidden(text="Forbidden")
                break

        return await handler(request)

    return middleware


@web.middleware
async def default_headers_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """
    Default the content type to HTML and let browsers cache static assets.
    """
    response = await handler(request)

    if response.prepared:
        return response

    # content type is guessed from the file name when the response is sent
    if isinstance(response, web.FileResponse):
        response.headers.setdefault("Cache-Control", "max-age=600")
        return response

    if not response.headers.get("Content-Type"):
        response.headers["Content-Type"] = "text/html; charset=utf-8"

    content_type = response.headers["Content-Type"]
    if not content_type.startswith(HTML_CONTENT_TYPE) and "json" not in content_type:
        response.headers.setdefault("Cache-Control", "max-age=600")

    return response
