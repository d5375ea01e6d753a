#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Local Celery beat runner. In development the due-bill job runs every two
minutes instead of every ten.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

if __name__ == "__main__":
    print(f"Starting Celery beat ({os.environ['ENVIRONMENT']})")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "practicebook.tasks.celery_app",
        "beat",
        "--loglevel=info",
    ]

    subprocess.run(cmd)
