from .settings import *  # noqa F401

DEBUG = False

SECRET_KEY = env("SECRET_KEY")

ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS")

# Shorter cache lifetime than development
FUZZY_SEARCH_CACHE_TIMEOUT = env.int("FUZZY_SEARCH_CACHE_TIMEOUT", default=60)
