"""
Web route handlers for the sports day scoreboard.
"""

import hmac
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from aiohttp import WSMsgType, web
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .channels import Channels
from .config import AppConfig
from .configurator import run_configurator
from .database import DatabaseManager
from .errors import ConfigIOError, ConfigParseError, ScoreValidationError, StorageError
from .logs import LogCollector
from .middleware import SESSION_COOKIE
from .schedule import Configuration
from .scores import parse_score_sheet, tally_scoreboard

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"

SCOREBOARD_CHANNEL = "scoreboard"
SCORES_CHANNEL = "scores"


class WebHandlers:
    """Handles web routes and responses."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        config: AppConfig,
        schedule: Configuration,
        channels: Channels,
        log_collector: LogCollector,
        templates_path: Optional[str] = None,
    ) -> None:
        self.db = db_manager
        self.config = config
        self.schedule = schedule
        self.channels = channels
        self.log_collector = log_collector

        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_path or str(TEMPLATES_PATH)),
            autoescape=select_autoescape(["html"]),
            auto_reload=False,
            cache_size=50,
        )

    def render(
        self,
        request: web.Request,
        template_name: str,
        status: int = 200,
        **context: Any,
    ) -> web.Response:
        """
        Render a template with the common page context.

        @param request: Current request, for the session
        @param template_name: Template file relative to the templates folder
        @param status: HTTP status code
        @param context: Template variables
        @return: HTML response
        """
        template = self.jinja_env.get_template(template_name)
        html = template.render(
            event_name=self.config.get("event_name"),
            session=request.get("session"),
            config=self.config,
            **context,
        )
        return web.Response(text=html, status=status, content_type="text/html")

    @staticmethod
    def event_filters(request: web.Request) -> Dict[str, Optional[str]]:
        """
        Read the year / activity / group filters from the query string.

        @param request: HTTP request
        @return: Dictionary of filters, None meaning "all"
        """
        filters = {}
        for key in ("year", "activity", "group"):
            value = request.query.get(key, "").strip()
            filters[key] = value if value and value != "all" else None
        return filters

    async def filtered_events(self, request: web.Request) -> List[Dict[str, Any]]:
        filters = self.event_filters(request)
        return await self.db.get_events_where(
            year_id=filters["year"],
            filter_key=filters["activity"],
            gender_id=filters["group"],
        )

    async def render_scoreboard_partial(self) -> str:
        """
        Render the scoreboard table, as embedded in the page and pushed to
        live subscribers.

        @return: HTML fragment
        """
        years = await self.db.get_all_years()
        events = await self.db.get_all_events()
        totals = tally_scoreboard(events, self.schedule.form_ids())

        template = self.jinja_env.get_template("partials/scoreboard.html")
        return template.render(forms=self.schedule.forms, years=years, **totals)

    async def web_index(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(request, "index.html", title="Home")

    async def web_scoreboard(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Scoreboard page with totals per year and form.

        @param request: HTTP request
        @return: HTTP response with rendered scoreboard
        """
        scores = await self.render_scoreboard_partial()
        return self.render(
            request,
            "scoreboard.html",
            title="Scoreboard",
            scores=scores,
            live_updates=self.config.is_feature_enabled("live_updates"),
            channel=SCOREBOARD_CHANNEL,
        )

    async def web_results(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Results page listing every event's scores, optionally filtered.

        @param request: HTTP request with optional year/activity/group query
        @return: HTTP response with rendered results
        """
        events = await self.filtered_events(request)
        results = []

        for event in events:
            try:
                scores = parse_score_sheet(event["scores"])
            except ScoreValidationError as e:
                logger.warning("Invalid scores stored for event %s: %s", event["id"], e)
                scores = {}

            results.append(
                {
                    "id": event["id"],
                    "name": event["name"],
                    "year": self.schedule.year_name(event["year_id"]),
                    "group": event["gender_id"],
                    "scores": scores,
                }
            )

        return self.render(
            request,
            "results.html",
            title="Results",
            forms=self.schedule.forms,
            events=results,
            filters=self.event_filters(request),
            schedule=self.schedule,
        )

    async def web_login_form(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(
            request, "login.html", title="Log in", next=request.query.get("next", "/")
        )

    async def web_login(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Log a user in with their email and the shared login secret.

        The configured admin email is created on first login with every
        permission; other users must have been added by an admin.

        @param request: HTTP request with form fields email, secret, next
        @return: Redirect with a session cookie, or the login page with an error
        """
        form = await request.post()
        email = str(form.get("email", "")).strip().lower()
        secret = str(form.get("secret", ""))
        next_url = _safe_next(str(form.get("next", "/")))

        expected = self.config.get("auth", "login_secret") or ""
        if not email or not expected or not hmac.compare_digest(secret, expected):
            logger.warning("Failed login attempt for %s", email or "<empty>")
            return self.render(
                request,
                "login.html",
                status=401,
                title="Log in",
                next=next_url,
                error="Invalid email or secret",
            )

        admin_email = (self.config.get("auth", "admin_email") or "").strip().lower()
        if admin_email and email == admin_email:
            user = await self.db.get_or_create_user(
                email, has_admin=True, has_set_score=True
            )
        else:
            user = await self.db.find_user_by_email(email)

        if user is None:
            logger.warning("Login refused for unknown user %s", email)
            return self.render(
                request,
                "login.html",
                status=403,
                title="Log in",
                next=next_url,
                error="This email has no access",
            )

        session_id = await self.db.create_session(user)
        logger.info("User %s logged in", email)

        response = web.HTTPFound(next_url)
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            httponly=True,
            samesite="Lax",
            secure=bool(self.config.get("auth", "cookie_secure")),
        )
        raise response

    async def web_logout(
        self,
        request: web.Request,
    ) -> web.Response:
        session = request["session"]
        if session.verified:
            await self.db.delete_session(session.id)

        response = web.HTTPFound("/")
        response.del_cookie(SESSION_COOKIE)
        raise response

    async def web_scores(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Score entry page for the filtered events.

        @param request: HTTP request with optional year/activity/group query
        @return: HTTP response with rendered score entry forms
        """
        events = await self.filtered_events(request)
        for event in events:
            try:
                event["sheet"] = parse_score_sheet(event["scores"])
            except ScoreValidationError:
                event["sheet"] = {}

        return self.render(
            request,
            "set_scores.html",
            title="Set Scores",
            events=events,
            forms=self.schedule.forms,
            tiers=self.schedule.scores,
            filters=self.event_filters(request),
            schedule=self.schedule,
        )

    async def web_set_event_scores(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Store the scores of one event and push the new totals to live
        subscribers.

        @param request: HTTP request with JSON body {"scores": {form_id: points}}
        @return: JSON response with the stored score sheet
        """
        event_id = request.match_info["event_id"]

        try:
            body = await request.json()
        except ValueError:
            return web.json_response(
                {"success": False, "error": "Body must be JSON"}, status=400
            )

        raw = body.get("scores") if isinstance(body, dict) else None
        try:
            sheet = parse_score_sheet(
                raw,
                form_ids=self.schedule.form_ids(),
                allowed_values=self.schedule.score_values(),
            )
        except ScoreValidationError as e:
            return web.json_response({"success": False, "error": str(e)}, status=400)

        if not await self.db.set_event_scores(event_id, sheet):
            return web.json_response(
                {"success": False, "error": f"Unknown event {event_id}"}, status=404
            )

        logger.info(
            "Scores for %s set by user %s: %s",
            event_id,
            request["session"].user_id,
            sheet,
        )
        await self.publish_updates(event_id, sheet)

        return web.json_response({"success": True, "event_id": event_id, "scores": sheet})

    async def publish_updates(
        self,
        event_id: Optional[str] = None,
        sheet: Optional[Dict[str, int]] = None,
    ) -> None:
        """
        Push the scoreboard (and the changed event, if any) to subscribers.

        @param event_id: Event whose scores changed
        @param sheet: The event's new score sheet
        """
        if not self.config.is_feature_enabled("live_updates"):
            return

        if self.channels.subscriber_count(SCOREBOARD_CHANNEL):
            await self.channels.publish(
                SCOREBOARD_CHANNEL, await self.render_scoreboard_partial()
            )
        if event_id is not None:
            await self.channels.publish(
                SCORES_CHANNEL, json.dumps({"event_id": event_id, "scores": sheet})
            )

    async def web_ws(
        self,
        request: web.Request,
    ) -> web.WebSocketResponse:
        """
        WebSocket subscription to a named channel.

        Text frames from the client are echoed back.

        @param request: HTTP request with the channel name in the path
        @return: WebSocket response, once the client disconnects
        """
        channel = request.match_info["channel"]
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)

        logger.debug("WebSocket session started, subscribing to %s", channel)
        self.channels.subscribe(channel, ws)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    logger.debug("Received from client: %s", msg.data)
                    await ws.send_str(f"echo: {msg.data}")
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self.channels.unsubscribe(channel, ws)
            logger.debug("WebSocket client disconnected from %s", channel)

        return ws

    async def web_admin_index(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(
            request,
            "admin/index.html",
            title="Admin",
            schedule=self.schedule,
            event_count=await self.db.count_events(),
            user_count=await self.db.count_users(),
        )

    async def web_admin_configure(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Rebuild the schedule from the schedule file, discarding all scores.

        Failures are logged and reported on the admin page; the previous
        schedule stays in place.

        @param request: HTTP request
        @return: Admin page with the outcome
        """
        schedule_path = self.config.get("schedule", "path")
        status = 200
        message = None
        error = None

        try:
            self.schedule = await run_configurator(self.db, schedule_path)
            message = f"Schedule rebuilt from {schedule_path}"
        except (ConfigIOError, ConfigParseError) as e:
            logger.error("Schedule rebuild failed: %s", e)
            status = 400
            error = str(e)
        except StorageError as e:
            logger.error("Schedule rebuild failed: %s", e)
            status = 500
            error = str(e)

        if error is None:
            await self.publish_updates()

        return self.render(
            request,
            "admin/index.html",
            status=status,
            title="Admin",
            schedule=self.schedule,
            event_count=await self.db.count_events(),
            user_count=await self.db.count_users(),
            message=message,
            error=error,
        )

    async def web_admin_users_list(
        self,
        request: web.Request,
    ) -> web.Response:
        users = await self.db.get_all_users()
        return self.render(request, "admin/users_list.html", title="Users", users=users)

    async def web_admin_users_new(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(request, "admin/users_new.html", title="New User")

    async def web_admin_users_create(
        self,
        request: web.Request,
    ) -> web.Response:
        form = await request.post()
        email = str(form.get("email", "")).strip().lower()

        if not email:
            return self.render(
                request,
                "admin/users_new.html",
                status=400,
                title="New User",
                error="Email is required",
            )

        try:
            await self.db.create_user(
                email,
                has_admin=form.get("has_admin") == "on",
                has_set_score=form.get("has_set_score") == "on",
            )
        except StorageError as e:
            logger.warning("Could not create user %s: %s", email, e.cause)
            return self.render(
                request,
                "admin/users_new.html",
                status=400,
                title="New User",
                error=f"Could not create user {email}",
            )

        raise web.HTTPFound("/admin/users")

    async def web_admin_users_edit(
        self,
        request: web.Request,
    ) -> web.Response:
        user = await self._user_from_path(request)
        return self.render(request, "admin/users_edit.html", title="Edit User", user=user)

    async def web_admin_users_update(
        self,
        request: web.Request,
    ) -> web.Response:
        user = await self._user_from_path(request)
        form = await request.post()
        email = str(form.get("email", "")).strip().lower() or user["email"]

        try:
            await self.db.update_user(
                user["id"],
                email,
                has_admin=form.get("has_admin") == "on",
                has_set_score=form.get("has_set_score") == "on",
            )
        except StorageError as e:
            logger.warning("Could not update user %s: %s", user["id"], e.cause)
            return self.render(
                request,
                "admin/users_edit.html",
                status=400,
                title="Edit User",
                user=user,
                error=f"Could not update user {user['email']}",
            )

        logger.info("Updated user %s", email)
        raise web.HTTPFound("/admin/users")

    async def _user_from_path(self, request: web.Request) -> Dict[str, Any]:
        try:
            user_id = int(request.match_info["id"])
        except ValueError:
            raise web.HTTPNotFound(text="Unknown user")

        user = await self.db.find_user_by_id(user_id)
        if user is None:
            raise web.HTTPNotFound(text="Unknown user")
        return user

    async def web_admin_console(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(
            request,
            "admin/console.html",
            title="Console",
            entries=self.log_collector.get_entries(),
        )

    async def web_admin_console_clear(
        self,
        _: web.Request,
    ) -> web.Response:
        self.log_collector.clear()
        return web.json_response({"success": True})

    async def web_admin_sqlite(
        self,
        request: web.Request,
    ) -> web.Response:
        return self.render(request, "admin/sqlite.html", title="SQLite")

    async def web_admin_sqlite_execute(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Run one SQL statement from the admin SQL console.

        @param request: HTTP request with JSON body {"query": "..."}
        @return: JSON response {success, output, error}
        """
        try:
            body = await request.json()
        except ValueError:
            body = None

        query = body.get("query", "").strip() if isinstance(body, dict) else ""
        if not query:
            return web.json_response(
                {"success": False, "output": "", "error": "Query is required"},
                status=400,
            )

        try:
            result = await self.db.execute_sql(query)
        except ValueError as e:
            return web.json_response(
                {"success": False, "output": "", "error": str(e)}, status=400
            )
        except StorageError as e:
            return web.json_response(
                {"success": False, "output": "", "error": str(e.cause)}
            )

        lines = ["|".join(result["columns"])] if result["columns"] else []
        lines.extend(
            "|".join("" if value is None else str(value) for value in row)
            for row in result["rows"]
        )
        return web.json_response(
            {"success": True, "output": "\n".join(lines), "error": None}
        )

    async def web_api_years(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        API endpoint for the stored years.

        @param _: Unused request parameter
        @return: JSON response containing the list of years
        """
        years = await self.db.get_all_years()
        return web.json_response({"years": years})

    async def web_api_events(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint for events, filtered by year, activity and group.

        @param request: HTTP request with optional year/activity/group query
        @return: JSON response containing the matching events
        """
        events = await self.filtered_events(request)
        for event in events:
            try:
                event["scores"] = parse_score_sheet(event["scores"])
            except ScoreValidationError:
                event["scores"] = {}
        return web.json_response({"events": events})


def _safe_next(next_url: str) -> str:
    """Only allow redirects to local paths."""
    if next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"
