#!/usr/bin/env python3
"""Entry point for running the tabletop session server.

Run with: python -m tabletop.game_server
Or, once installed: tabletop-server
"""

import uvicorn

from tabletop.game_server.server import app
from tabletop.utils.config import get_port


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=get_port())


if __name__ == "__main__":
    main()
