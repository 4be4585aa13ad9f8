"""用户接口模块

- WebServer: REST API（FastAPI + uvicorn）

使用示例：
    ```python
    from interface import WebServer

    server = WebServer(db, auth, service, sweep, port=5000)
    await server.startup()
    ```
"""
from interface.web.server import WebServer

__all__ = ["WebServer"]
