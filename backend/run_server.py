# run_server.py
import os

import uvicorn

from app.main import app

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("COLLAB_HOST", "127.0.0.1"),
        port=int(os.getenv("COLLAB_PORT", "8000")),
        log_level="info",
        proxy_headers=True,
    )
