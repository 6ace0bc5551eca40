import uvicorn

from imagegrid import config


def main() -> None:
    uvicorn.run("imagegrid.main:app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
