import os

wsgi_app = "canteen.wsgi:application"
bind = os.getenv("GUNI_BIND", "0.0.0.0:8000")


def cpu():
    return max(1, (os.cpu_count() or 1))


workers = min(max(2, cpu() * 2), 8)

# Threads per worker; request handling blocks on the DB and the catalog service.
worker_class = "gthread"
threads = int(os.getenv("GTHREADS", "4"))

timeout = int(os.getenv("GUNI_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNI_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNI_KEEPALIVE", "5"))

preload_app = True
max_requests = int(os.getenv("GUNI_MAX_REQUESTS", "2000"))
max_requests_jitter = int(os.getenv("GUNI_MAX_REQUESTS_JITTER", "200"))

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNI_LOGLEVEL", "info")
