"""Gunicorn configuration for production.

Run with: gunicorn -c gunicorn.conf.py 'app:create_app()'
"""

# Server socket
bind = '0.0.0.0:8080'

# Worker processes
workers = 2
worker_class = 'sync'
timeout = 30
keepalive = 2

# Logging
accesslog = '-'
errorlog = '-'
loglevel = 'info'

# Process naming
proc_name = 'goldscheme-calculator'

# Server mechanics
daemon = False
pidfile = None
umask = 0
