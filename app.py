import logging

import uvicorn

from podproxy.config import LOG_LEVEL, PORT

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    logger.info("Proxy server running on http://localhost:%d", PORT)
    logger.info("  Search: http://localhost:%d/?action=search&q=tech", PORT)
    logger.info("  Top US: http://localhost:%d/?action=top&country=US", PORT)
    logger.info("  Feed:   http://localhost:%d/?action=feed&url=<feed_url>", PORT)

    uvicorn.run("api.proxy:app", host="0.0.0.0", port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == '__main__':
    main()
