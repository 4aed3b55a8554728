"""
Run script for DevSprint API.
"""

import os
import uvicorn

from devsprint.infrastructure.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "devsprint.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=os.getenv("DEVSPRINT_DEV_MODE", "").lower() == "true",
        log_level="info"
    )
