"""
asgi.py -- Application assembly for the identity service.

Run with:  uvicorn asgi:app --reload
           python asgi.py            (binds 0.0.0.0:$PORT)
"""

from api.main import app
from core.config import get_settings

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)  # nosec B104 -- container entrypoint
