import multiprocessing

wsgi_app = "academy.main:app"
bind = "127.0.0.1:8000"
# Keep the worker count modest; every worker holds its own in-memory cache.
workers = min((multiprocessing.cpu_count() * 2) + 1, 4)
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
