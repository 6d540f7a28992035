"""Database configuration for Tortoise-ORM."""

import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://fleetmeter.sqlite3")

MODEL_MODULES = ["fleetmeter.core.models"]


def build_tortoise_config(db_url: str, with_migrations: bool = True) -> dict[str, Any]:
    """
    Tortoise config for the FleetMeter models on ``db_url``.

    aerich keeps its own table alongside the models; test databases built
    with ``generate_schemas`` leave it out.
    """
    modules = list(MODEL_MODULES)
    if with_migrations:
        modules.append("aerich.models")
    return {
        "connections": {"default": db_url},
        "apps": {
            "models": {
                "models": modules,
                "default_connection": "default",
            },
        },
    }


# Read by aerich through [tool.aerich] in pyproject.toml.
TORTOISE_ORM = build_tortoise_config(DATABASE_URL)
