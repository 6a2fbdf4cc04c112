"""Shared fixtures for the scoreboard tests."""

from pathlib import Path

import pytest

from sportsday.config import AppConfig
from sportsday.database import DatabaseManager
from sportsday.scoreboard import SportsdaySystem

SCHEDULE_YAML = """
version: "1.0.0"
genders: [boys, girls]
scores:
  - {name: "1st", value: 10, default: false}
  - {name: "2nd", value: 8, default: false}
  - {name: "3rd", value: 6, default: false}
  - {name: "Participated", value: 1, default: true}
years:
  - {id: year7, name: "Year 7"}
  - {id: year8, name: "Year 8"}
forms:
  - {id: red, name: "Red House", colour: "#ff0000"}
  - {id: blue, name: "Blue House", colour: "#0000ff"}
events:
  - id: sprint
    name: "100m Sprint"
    applicable_years: {type: all}
    applicable_genders: {type: all}
  - id: shotput
    name: "Shot Put"
    applicable_years: {type: include, ids: [year8]}
    applicable_genders: {type: exclude, ids: [girls]}
""".lstrip()

ADMIN_EMAIL = "admin@school.test"
LOGIN_SECRET = "letmein"


@pytest.fixture
def schedule_path(tmp_path: Path) -> Path:
    path = tmp_path / "sportsday.yaml"
    path.write_text(SCHEDULE_YAML, encoding="utf-8")
    return path


@pytest.fixture
async def db(tmp_path: Path) -> DatabaseManager:
    manager = DatabaseManager(str(tmp_path / "test.db"))
    await manager.init_db()
    return manager


@pytest.fixture
def settings(tmp_path: Path, schedule_path: Path) -> AppConfig:
    config = AppConfig(None)
    config.set("database", "path", value=str(tmp_path / "web.db"))
    config.set("schedule", "path", value=str(schedule_path))
    config.set("auth", "admin_email", value=ADMIN_EMAIL)
    config.set("auth", "login_secret", value=LOGIN_SECRET)
    return config


@pytest.fixture
async def system(settings: AppConfig) -> SportsdaySystem:
    sportsday = SportsdaySystem(settings)
    await sportsday.init_db()
    await sportsday.load_schedule(configure=True)
    return sportsday


@pytest.fixture
async def client(aiohttp_client, system: SportsdaySystem):
    return await aiohttp_client(system.create_app())


async def login(client, email: str = ADMIN_EMAIL, secret: str = LOGIN_SECRET):
    return await client.post(
        "/login",
        data={"email": email, "secret": secret, "next": "/"},
        allow_redirects=False,
    )
