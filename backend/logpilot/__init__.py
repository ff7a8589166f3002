"""LogPilot: ask questions about CloudWatch logs in plain language."""

__version__ = "0.1.0"


def __getattr__(name):
    if name == "QueryOrchestrator":
        from .orchestrator import QueryOrchestrator
        return QueryOrchestrator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = ['QueryOrchestrator']
