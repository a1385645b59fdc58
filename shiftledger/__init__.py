"""shiftledger package.

Avoid importing the FastAPI app at module import time so the data layer
(e.g. shiftledger.db) can be used without building the web app.
"""

__version__ = "0.1.0"
