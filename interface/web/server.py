"""Web API - 会员、缴费、提醒与仪表盘的 REST 接口

基于 FastAPI，uvicorn 在独立线程中运行，事件循环留给调度器。

使用方式：
    ```python
    server = WebServer(db, auth, service, sweep, port=5000)
    await server.startup()
    # 访问 http://localhost:5000/api/health
    ```
"""
import asyncio
import threading
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from business.alert_sweep import AlertSweep
from business.auth import AuthService
from business.exceptions import (
    AuthenticationError, ConcurrentModificationError, DuplicateEntityError,
    EntityNotFoundError, GymControlError, InvalidDateError,
    StoreUnavailableError, UnsupportedMembershipTypeError, ValidationError,
)
from business.membership_service import MembershipService
from database import DatabaseManager
from database.models import AlertType

# 业务异常 -> HTTP 状态码（按顺序匹配，子类在前）
ERROR_STATUS = (
    (EntityNotFoundError, 404),
    (AuthenticationError, 401),
    (ConcurrentModificationError, 409),
    (StoreUnavailableError, 503),
    (DuplicateEntityError, 400),
    (ValidationError, 400),
    (InvalidDateError, 400),
    (UnsupportedMembershipTypeError, 400),
)


def status_for(error: GymControlError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


# ==================== 请求体 ====================

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class MemberRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    document: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[str] = None
    registration_date: Optional[str] = None
    membership_type: Optional[str] = None
    monthly_fee: Optional[float] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class PaymentRequest(BaseModel):
    member_id: Optional[int] = None
    amount: Optional[float] = None
    payment_type: Optional[str] = None
    payment_date: Optional[str] = None
    description: Optional[str] = None


class AlertRequest(BaseModel):
    member_id: Optional[int] = None
    alert_type: Optional[str] = None
    message: Optional[str] = None


class WebServer:
    """GymControl REST API 服务

    路由（除登录和健康检查外均需 ``Authorization: Bearer <token>``）：
    - /api/auth      登录、校验 token、修改密码
    - /api/members   会员 CRUD、启用/停用
    - /api/payments  缴费 CRUD、月报
    - /api/alerts    提醒列表、已读、删除、汇总、立即清扫
    - /api/dashboard 仪表盘、年度月度统计
    - /api/health    健康检查
    """

    def __init__(
        self,
        db: DatabaseManager,
        auth: AuthService,
        service: MembershipService,
        sweep: AlertSweep,
        host: str = "0.0.0.0",
        port: int = 5000,
        page_size: int = 10,
    ):
        self.db = db
        self.auth = auth
        self.service = service
        self.sweep = sweep
        self.host = host
        self.port = port
        self.page_size = page_size
        self.app = self._create_app()
        self.running = False
        self._server_thread: Optional[threading.Thread] = None
        self._server = None  # uvicorn.Server 实例

    def _create_app(self) -> FastAPI:
        """创建 FastAPI 应用"""
        app = FastAPI(
            title="GymControl",
            description="Gym membership back office API",
            version="1.0.0",
        )

        @app.exception_handler(GymControlError)
        async def gym_error_handler(request: Request, exc: GymControlError):
            status = status_for(exc)
            if status >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc}")
            else:
                logger.warning(f"{request.method} {request.url.path}: {exc}")
            return JSONResponse(
                status_code=status,
                content={"message": str(exc), "error": type(exc).__name__},
            )

        def bearer_token(request: Request) -> Optional[str]:
            header = request.headers.get("Authorization", "")
            return header[7:] if header.startswith("Bearer ") else None

        def get_current_admin(request: Request) -> Dict[str, Any]:
            """从请求头中验证 token"""
            return self.auth.verify(bearer_token(request))

        # ==================== 认证 ====================

        @app.post("/api/auth/login")
        def login(data: LoginRequest):
            return self.auth.login(data.email, data.password)

        @app.get("/api/auth/verify")
        def verify(admin=Depends(get_current_admin)):
            return {"admin": admin}

        @app.post("/api/auth/logout")
        def logout(request: Request, _=Depends(get_current_admin)):
            self.auth.logout(bearer_token(request))
            return {"message": "Logged out"}

        @app.post("/api/auth/change-password")
        def change_password(data: ChangePasswordRequest,
                            admin=Depends(get_current_admin)):
            self.auth.change_password(admin["id"], data.current_password, data.new_password)
            return {"message": "Password updated"}

        # ==================== 会员 ====================

        @app.get("/api/members")
        def list_members(page: int = 1, limit: Optional[int] = None,
                         search: str = "", is_active: Optional[bool] = None,
                         _=Depends(get_current_admin)):
            return self.db.list_members(page, limit or self.page_size, search, is_active)

        @app.post("/api/members", status_code=201)
        def create_member(data: MemberRequest, _=Depends(get_current_admin)):
            return self.service.create_member(data.model_dump(exclude_none=True))

        @app.get("/api/members/{member_id}")
        def get_member(member_id: int, _=Depends(get_current_admin)):
            return self.db.get_member_detail(member_id)

        @app.put("/api/members/{member_id}")
        def update_member(member_id: int, data: MemberRequest,
                          _=Depends(get_current_admin)):
            return self.service.update_member(member_id, data.model_dump(exclude_unset=True))

        @app.delete("/api/members/{member_id}")
        def delete_member(member_id: int, _=Depends(get_current_admin)):
            self.service.delete_member(member_id)
            return {"message": "Member deleted"}

        @app.patch("/api/members/{member_id}/toggle-status")
        def toggle_member(member_id: int, _=Depends(get_current_admin)):
            return self.service.toggle_member_status(member_id)

        @app.get("/api/members/{member_id}/alerts")
        def member_alerts(member_id: int, _=Depends(get_current_admin)):
            return {"alerts": self.db.get_alerts_by_member(member_id)}

        # ==================== 缴费 ====================

        @app.get("/api/payments")
        def list_payments(page: int = 1, limit: Optional[int] = None,
                          member_id: Optional[int] = None,
                          start_date: Optional[date] = None,
                          end_date: Optional[date] = None,
                          _=Depends(get_current_admin)):
            return self.db.list_payments(
                page, limit or self.page_size, member_id, start_date, end_date
            )

        @app.post("/api/payments", status_code=201)
        def create_payment(data: PaymentRequest, _=Depends(get_current_admin)):
            return self.service.record_payment(data.model_dump(exclude_none=True))

        @app.get("/api/payments/reports/monthly")
        def monthly_report(year: Optional[int] = None, month: Optional[int] = None,
                           _=Depends(get_current_admin)):
            if month is not None and not 1 <= month <= 12:
                raise ValidationError("month must be between 1 and 12")
            return self.db.get_monthly_payment_report(year or date.today().year, month)

        @app.get("/api/payments/{payment_id}")
        def get_payment(payment_id: int, _=Depends(get_current_admin)):
            return self.db.get_payment_detail(payment_id)

        @app.put("/api/payments/{payment_id}")
        def update_payment(payment_id: int, data: PaymentRequest,
                           _=Depends(get_current_admin)):
            return self.service.update_payment(payment_id, data.model_dump(exclude_unset=True))

        @app.delete("/api/payments/{payment_id}")
        def delete_payment(payment_id: int, _=Depends(get_current_admin)):
            self.service.delete_payment(payment_id)
            return {"message": "Payment deleted"}

        # ==================== 提醒 ====================

        @app.get("/api/alerts")
        def list_alerts(page: int = 1, limit: Optional[int] = None,
                        is_read: Optional[bool] = None,
                        _=Depends(get_current_admin)):
            return self.db.list_alerts(page, limit or self.page_size, is_read)

        @app.post("/api/alerts", status_code=201)
        def create_alert(data: AlertRequest, _=Depends(get_current_admin)):
            if not data.member_id or not data.alert_type or not data.message:
                raise ValidationError("member_id, alert_type and message are required")
            try:
                alert_type = AlertType(data.alert_type).value
            except ValueError:
                raise ValidationError(f"Unsupported alert type: {data.alert_type!r}") from None
            return self.db.create_alert(data.member_id, alert_type, data.message)

        @app.get("/api/alerts/summary")
        def alert_summary(_=Depends(get_current_admin)):
            return self.db.get_alert_summary()

        @app.post("/api/alerts/run")
        def run_sweep(_=Depends(get_current_admin)):
            return self.sweep.run().to_dict()

        @app.patch("/api/alerts/mark-all-read")
        def mark_all_read(_=Depends(get_current_admin)):
            return {"message": "All alerts marked as read",
                    "count": self.db.mark_all_alerts_read()}

        @app.patch("/api/alerts/{alert_id}/read")
        def mark_read(alert_id: int, _=Depends(get_current_admin)):
            return self.db.mark_alert_read(alert_id)

        @app.delete("/api/alerts/read/all")
        def delete_read(_=Depends(get_current_admin)):
            return {"message": "Read alerts deleted",
                    "count": self.db.delete_read_alerts()}

        @app.delete("/api/alerts/{alert_id}")
        def delete_alert(alert_id: int, _=Depends(get_current_admin)):
            self.db.delete_alert(alert_id)
            return {"message": "Alert deleted"}

        # ==================== 仪表盘 ====================

        @app.get("/api/dashboard")
        def dashboard(_=Depends(get_current_admin)):
            return self.db.get_dashboard(lookahead_days=self.sweep.lookahead_days)

        @app.get("/api/dashboard/monthly-stats/{year}")
        def monthly_stats(year: int, _=Depends(get_current_admin)):
            return self.db.get_monthly_stats(year)

        @app.get("/api/health")
        def health():
            """健康检查"""
            return {"status": "OK", "timestamp": datetime.now().isoformat()}

        return app

    async def startup(self):
        """在独立线程中启动 uvicorn"""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            loop="asyncio",
        )
        self._server = uvicorn.Server(config)
        # 信号由 app.py 统一管理
        self._server.install_signal_handlers = lambda: None
        self.running = True

        def run_server():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                loop.run_until_complete(self._server.serve())
            except Exception as e:
                logger.error(f"Web server crashed: {e}")
            finally:
                loop.close()

        self._server_thread = threading.Thread(target=run_server, daemon=True)
        self._server_thread.start()

        # 等待服务器启动
        waited = 0.0
        while not self._server.started and waited < 5:
            await asyncio.sleep(0.1)
            waited += 0.1

        logger.info(f"Web API listening on http://{self.host}:{self.port}")

    async def shutdown(self):
        """停止 uvicorn，确保端口被释放"""
        self.running = False
        if self._server is None:
            return

        logger.info("Stopping web server...")
        self._server.should_exit = True
        if self._server_thread and self._server_thread.is_alive():
            self._server_thread.join(timeout=3.0)
        if self._server_thread and self._server_thread.is_alive():
            logger.warning("Web server did not stop within 3s, forcing exit")
            self._server.force_exit = True
            self._server_thread.join(timeout=2.0)

        self._server = None
        self._server_thread = None
        logger.info("Web server stopped")
