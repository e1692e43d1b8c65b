"""
Run the relay with uvicorn: ``python -m relay_core``.
"""

import os

import uvicorn

from relay_core.api import create_app_from_env


def main() -> None:
    app = create_app_from_env()
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "3000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
