#!/usr/bin/env python3
"""
Run the plant monitor API locally with environment variables from .env file or environment.
"""
import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

script_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(script_dir))

# Shell exports win over .env values
load_dotenv(dotenv_path=str(script_dir / ".env"))

missing_vars = [var for var in ("PLANT_TABLE", "AWS_REGION") if not os.environ.get(var)]
if missing_vars:
    sys.exit(f"Missing required environment variables: {', '.join(missing_vars)} (set them in {script_dir / '.env'})")

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

uvicorn.run(
    "plant_monitor.main:create_app",
    factory=True,
    host="0.0.0.0",
    port=int(os.environ.get("PORT", "8000")),
)
