"""
CLI entry point.

Usage:
    python -m expiration_jobs run [--task-size N] [--parallel N]
    python -m expiration_jobs discover
    python -m expiration_jobs params
    python -m expiration_jobs serve
"""
from .cli import app

if __name__ == "__main__":
    app()
