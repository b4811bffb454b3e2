from refundx_proxy.routers import proxy

__all__ = ["proxy"]
