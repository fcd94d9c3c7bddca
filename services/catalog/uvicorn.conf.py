import os

host = "0.0.0.0"
port = int(os.getenv("PORT", "9001"))
workers = int(os.getenv("UVICORN_WORKERS", str(max(2, (os.cpu_count() or 1)))))
loop = os.getenv("UVICORN_LOOP", "auto")
log_level = os.getenv("LOG_LEVEL", "info")
