from __future__ import annotations

import logging

import uvicorn

from refundx_proxy.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run("refundx_proxy.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
