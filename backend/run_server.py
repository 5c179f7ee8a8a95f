"""Development server runner: `python run_server.py` from the backend directory."""
import os
import signal
import sys

import uvicorn

from pharma_erp.core.config import settings


def handle_signal(sig, frame):
    print(f"\nReceived signal {sig}, shutting down gracefully...")
    sys.exit(0)


signal.signal(signal.SIGINT, handle_signal)
signal.signal(signal.SIGTERM, handle_signal)

if __name__ == "__main__":
    print("=" * 50)
    print(f"  Starting Pharma ERP Backend ({settings.ENVIRONMENT})")
    print("=" * 50)
    uvicorn.run(
        "pharma_erp.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
