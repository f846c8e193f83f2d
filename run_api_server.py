"""
Run the webhook ingestion service with uvicorn.

Listens on HOST:PORT from the environment (default [::]:6868).
"""

import uvicorn

from otterhound.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "otterhound.main:app",
        host=settings.HOST,
        port=settings.PORT,
    )
