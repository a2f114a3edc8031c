"""Entry point: python -m truthscore.web"""
import uvicorn

from ..config import settings


def main():
    uvicorn.run(
        "truthscore.web.app:app",
        host=settings.web_host,
        port=settings.web_port,
    )


if __name__ == "__main__":
    main()
