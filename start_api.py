#!/usr/bin/env python3
"""
Wait for the database, run migrations (same DATABASE_URL), then uvicorn.
"""
import os
import sys
import time

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from handcart.core.config import settings
from alembic.config import Config
from alembic import command

# 1) Wait for DB
timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
probe = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
start = time.time()
while True:
    try:
        with probe.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("[start_api] Database is ready.")
        break
    except OperationalError as e:
        if time.time() - start > timeout_s:
            print(f"[start_api] Timed out waiting for DB. Last error: {e}")
            raise
        time.sleep(1)
probe.dispose()

# 2) Run migrations using the same settings as the app
alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))
alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
command.upgrade(alembic_cfg, "head")

# 3) Start uvicorn (replace current process)
os.execv(
    sys.executable,
    [sys.executable, "-m", "uvicorn", "handcart.main:app", "--host", "0.0.0.0", "--port", os.getenv("PORT", "4000")],
)
