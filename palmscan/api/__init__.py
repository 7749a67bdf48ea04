from .router import router, get_session

__all__ = ['router', 'get_session']
