# runtime/hooks.py
class NoopHooks:
    def calibrated(self, **_):
        pass

    def graph_loaded(self, **_):
        pass

    def index_built(self, **_):
        pass

    def route(self, *_, **__):
        pass

    def error(self, *_, **__):
        pass
