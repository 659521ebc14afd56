from branch_helper.main import app


if __name__ == "__main__":
    import logging

    import uvicorn

    from branch_helper.core.config import settings

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "branch_helper.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
