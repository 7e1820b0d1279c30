from __future__ import annotations

from care_dispatch import DispatchConfig


def main() -> None:
    import uvicorn

    config = DispatchConfig.from_env()
    uvicorn.run(
        "backend.app.main:app",
        host=config.host,
        port=config.port,
        reload=config.reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
