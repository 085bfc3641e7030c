from .margin_session import MarginSession

__all__ = ["MarginSession"]
