"""Main entry point for TaskFlow."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from taskflow.api import create_fastapi_app
from taskflow.app import Application
from taskflow.config import load_settings
from taskflow.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Read configuration after .env is loaded
    settings = load_settings()
    setup_logging(settings)
    app = create_fastapi_app(Application(settings=settings))

    # Run with uvicorn; logging is already configured above
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
