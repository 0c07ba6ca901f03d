from functools import lru_cache
import logging

from google.cloud import secretmanager

logger = logging.getLogger('uvicorn.error')


@lru_cache(maxsize=None)
def get_secret(secret_id):
    # Accept a bare secret resource and read its latest version
    if "/versions/" not in secret_id:
        secret_id = f"{secret_id}/versions/latest"
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": secret_id})
    logger.info(f"Loaded secret {secret_id.split('/versions/')[0]}")
    return response.payload.data.decode("UTF-8")
