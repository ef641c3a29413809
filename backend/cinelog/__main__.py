"""Launch the Cinelog API with Uvicorn."""
import uvicorn

from cinelog.config import settings


def main() -> None:
    uvicorn.run("cinelog.main:app", host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
