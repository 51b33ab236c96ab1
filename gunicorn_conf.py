import multiprocessing
import os

# gunicorn -c gunicorn_conf.py taskmaster.main:app

bind = os.getenv("BIND", "0.0.0.0:8000")

# (2 x num_cores) + 1 unless WEB_CONCURRENCY is set
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 120
keepalive = 5

# Access log to stdout, errors to stderr
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

name = "taskmaster_api"
reload = False
