"""
Main SportsdaySystem class that orchestrates all components.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp_cors
from aiohttp import web, web_runner

from .channels import Channels
from .config import AppConfig
from .configurator import run_configurator
from .database import DatabaseManager
from .logs import LogCollector
from .middleware import default_headers_middleware, session_middleware
from .schedule import Configuration, load_configuration
from .web_handlers import WebHandlers

logger = logging.getLogger(__name__)

STATIC_PATH = Path(__file__).parent / "static"


class SportsdaySystem:
    """Sports day scoreboard web application."""

    def __init__(
        self,
        config: AppConfig,
        log_collector: Optional[LogCollector] = None,
        channels: Optional[Channels] = None,
    ) -> None:
        self.config = config
        self.log_collector = log_collector or LogCollector(
            config.get("logging", "max_entries")
        )
        self.channels = channels or Channels()
        self.db = DatabaseManager(config.get("database", "path"))
        self.schedule: Optional[Configuration] = None
        self.web_handlers: Optional[WebHandlers] = None

    async def init_db(self) -> None:
        """
        Initialize the database.

        Creates database tables if they do not exist.
        """
        await self.db.init_db()

    async def load_schedule(
        self,
        configure: Optional[bool] = None,
    ) -> Configuration:
        """
        Load the schedule document, rebuilding the stored schedule if asked.

        @param configure: Rebuild the stored plan (wipes scores); defaults to
                          the schedule.configure_on_start setting
        @return: The live schedule configuration
        """
        schedule_path = self.config.get("schedule", "path")
        if configure is None:
            configure = self.config.get("schedule", "configure_on_start") is True

        if configure:
            self.schedule = await run_configurator(self.db, schedule_path)
        else:
            self.schedule = load_configuration(schedule_path)

        if self.web_handlers is not None:
            self.web_handlers.schedule = self.schedule
        return self.schedule

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with all routes registered.

        The schedule must have been loaded first.

        @return: Configured aiohttp application
        """
        if self.schedule is None:
            raise RuntimeError("load_schedule() must be called before create_app()")

        self.web_handlers = WebHandlers(
            self.db,
            self.config,
            self.schedule,
            self.channels,
            self.log_collector,
        )
        handlers = self.web_handlers

        app = web.Application(
            middlewares=[session_middleware(self.db), default_headers_middleware]
        )

        # Setup CORS
        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=False,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods=["GET"],
                )
            },
        )

        # Static files route
        app.router.add_static("/static/", path=str(STATIC_PATH), name="static")

        # Public pages
        app.router.add_get("/", handlers.web_index)
        app.router.add_get("/scoreboard", handlers.web_scoreboard)
        app.router.add_get("/results", handlers.web_results)
        app.router.add_get("/login", handlers.web_login_form)
        app.router.add_post("/login", handlers.web_login)
        app.router.add_post("/logout", handlers.web_logout)

        # Score entry
        app.router.add_get("/scores", handlers.web_scores)
        app.router.add_post("/scores/{event_id}", handlers.web_set_event_scores)

        # Admin console
        app.router.add_get("/admin", handlers.web_admin_index)
        app.router.add_post("/admin/configure", handlers.web_admin_configure)
        app.router.add_get("/admin/users", handlers.web_admin_users_list)
        app.router.add_post("/admin/users", handlers.web_admin_users_create)
        app.router.add_get("/admin/users/new", handlers.web_admin_users_new)
        app.router.add_get("/admin/users/edit/{id}", handlers.web_admin_users_edit)
        app.router.add_post("/admin/users/edit/{id}", handlers.web_admin_users_update)
        app.router.add_get("/admin/console", handlers.web_admin_console)
        app.router.add_post("/admin/console/clear", handlers.web_admin_console_clear)

        # Conditionally add the SQL console and live update routes
        if self.config.is_feature_enabled("sqlite_console"):
            app.router.add_get("/admin/sqlite", handlers.web_admin_sqlite)
            app.router.add_post(
                "/admin/sqlite/execute", handlers.web_admin_sqlite_execute
            )

        if self.config.is_feature_enabled("live_updates"):
            app.router.add_get("/ws/{channel}", handlers.web_ws)

        # API routes, the only ones shared cross-origin
        cors.add(app.router.add_get("/api/years", handlers.web_api_years))
        cors.add(app.router.add_get("/api/events", handlers.web_api_events))

        return app

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind the server to (default uses configured host)
        @param port: Port number to use (default uses configured port)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.config.get("server", "host")
        if port is None:
            port = self.config.get("server", "port")

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        print(f"Web server running on http://{host}:{port}")
        return app_runner

    async def run_forever(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Run the web server until interrupted.

        @param host: Host address (default uses configured host)
        @param port: Port number (default uses configured port)
        """
        web_server_runner = await self.start_web_server(host, port)

        print(f"\n{self.config.get('event_name')} scoreboard running!")
        print("\nPress Ctrl+C to stop...\n")

        try:
            await asyncio.Event().wait()
        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\nShutting down server...")
        finally:
            await web_server_runner.cleanup()
