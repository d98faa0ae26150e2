"""Run the worker with ``python -m app.worker``."""

from app.worker.main import main

main()
