"""Local entry point: python main.py (production: uvicorn app.main:app)."""
import os

import uvicorn

from app.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
