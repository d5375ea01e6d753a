#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Local Celery worker runner for the series extension, due-bill and
completion jobs.
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
    queues = os.getenv("CELERY_QUEUES") or "celery"
    print(f"Starting Celery worker ({os.environ['ENVIRONMENT']}), queues: {queues}")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "practicebook.tasks.celery_app",
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "--pool=prefork",
        "-Q",
        queues,
    ]

    subprocess.run(cmd)
