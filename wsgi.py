"""
wsgi.py — Entry point for production servers.

Usage:
  uvicorn wsgi:application --host 0.0.0.0 --port 8000
  gunicorn -k uvicorn.workers.UvicornWorker wsgi:application

The rate limiter shares state across workers only when REDIS_URL is set.
Background PDF jobs run inside the worker that accepted them.
"""

import os

import uvicorn

from app import app as application  # noqa: F401

if __name__ == '__main__':
    uvicorn.run(
        'wsgi:application',
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', '8000')),
    )
