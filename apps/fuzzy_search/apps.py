from django.apps import AppConfig


class FuzzySearchAppConfig(AppConfig):
    name = "apps.fuzzy_search"
    label = "fuzzy_search"
