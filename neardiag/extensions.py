from flask import current_app

from .datapacks import DatapackRegistry, build_registry
from .engine.context import EngineContext
from .models import SurveyTables

EXT_KEY = "neardiag"


class Engine:
    """Loaded tables, shared engine context and datapack registry of one app."""

    def __init__(self, tables: SurveyTables, default_ttl=None):
        self.context = EngineContext(tables, default_ttl=default_ttl)
        self.registry: DatapackRegistry = build_registry(self.context)


def init_engine(app, tables: SurveyTables) -> Engine:
    engine = Engine(tables, default_ttl=app.config.get("CACHE_TTL_SECONDS"))
    app.extensions[EXT_KEY] = engine
    return engine


def get_engine() -> Engine:
    return current_app.extensions[EXT_KEY]
