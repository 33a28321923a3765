import os

# Settings are read at import time; tests never talk to a real database
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
