#!/usr/bin/env python3
"""
Run the image generation gateway (FastAPI).
Example:
  GATEWAY_API_KEY=... python run_image_gateway.py
"""
from __future__ import annotations

import os
import sys

# Ensure backend root is on path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import uvicorn
from image_gateway.config import get_settings
from image_gateway.main import app

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level=settings.log_level.lower(),
    )
