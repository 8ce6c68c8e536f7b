"""
FastAPI Production Application

Main entry point for the WooCommerce Accounting API.
"""

from woo_accounting.config import get_settings
from woo_accounting.serving.api.main import create_api_app

settings = get_settings()

app = create_api_app(settings)


def run() -> None:
    """Run the API with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(
        "woo_accounting.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        log_level=settings.monitoring.log_level.lower(),
        proxy_headers=True,
        server_header=False,
    )


if __name__ == "__main__":
    run()
