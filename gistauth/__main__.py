"""Development entrypoint.

Run with:
  python -m gistauth
"""

import os

import uvicorn


def main() -> None:
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "3000"))
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}
    uvicorn.run("gistauth.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
