import multiprocessing
import os

bind = os.getenv("COURSETRACK_BIND", "127.0.0.1:8000")
workers = int(os.getenv("COURSETRACK_WEB_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
wsgi_app = "coursetrack.main:app"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
