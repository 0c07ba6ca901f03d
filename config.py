import os

from dotenv import load_dotenv

load_dotenv()

FIRESTORE_PROJECT = os.getenv("FIRESTORE_PROJECT") or None
FIRESTORE_DATABASE = os.getenv("FIRESTORE_DATABASE", "(default)")

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

# Signing key comes straight from the env, or from Secret Manager when only the secret name is set
AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY")
AUTH_SECRET_NAME = os.getenv("AUTH_SECRET_NAME")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "150"))

ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
    if host.strip()
]

POSTS_COLLECTION = "posts"
COMMENTS_COLLECTION = "comments"
AUTHORS_COLLECTION = "authors"
