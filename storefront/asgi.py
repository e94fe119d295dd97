"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

En production, un process manager (ex: uvicorn, gunicorn -k uvicorn.workers.UvicornWorker)
importe `storefront.asgi:app`. Toute la configuration est centralisée dans storefront.app_setup.
"""

from storefront.app import app
