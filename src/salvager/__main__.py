import anyio
import uvicorn

from salvager.server.app import create_app
from salvager.settings import Settings
from salvager.utilities.logging import configure_logging


def main() -> None:
    """Serve the Salvager API with uvicorn."""
    settings = Settings()
    configure_logging(settings.log_level)

    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    anyio.run(server.serve)


if __name__ == "__main__":
    main()
