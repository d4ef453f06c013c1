"""
Service entry point.

    uvicorn memberauth_core.api.main:app
    memberauth-server
"""

import os

import uvicorn

from ..config import AuthConfig
from ..log_config import setup_logging
from .app import create_app

config = AuthConfig.from_env()
setup_logging(config.service_name, level=config.log_level, json_output=config.is_production)

app = create_app(config)


def run() -> None:
    uvicorn.run(
        "memberauth_core.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()
