"""Gunicorn production configuration."""
import multiprocessing

wsgi_app = "crm_import.main:app"
chdir = "backend"
bind = "0.0.0.0:8000"
workers = multiprocessing.cpu_count() * 2 + 1
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
# A 50 MB import runs inside the request
timeout = 600
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = True
accesslog = "-"
errorlog = "-"
loglevel = "info"
