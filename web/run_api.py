"""Run the marketplace API server. Run from project root: python web/run_api.py"""
import os
import sys
from pathlib import Path

# Add project root to path so config and marketplace imports work
_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_root))

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "web.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "true").lower() in ("1", "true", "yes"),
    )
