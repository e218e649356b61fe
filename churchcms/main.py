import uvicorn

from .config import settings
from .presentation.app_factory import app


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    run()
