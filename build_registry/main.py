"""
Main entry point for the build registry API.
"""

from .api import create_app

app = create_app()

if __name__ == "__main__":
    import uvicorn

    from .config import get_settings

    settings = get_settings()
    uvicorn.run(
        "build_registry.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
