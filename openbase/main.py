"""
Openbase 查询执行与写入校验服务 - 后端主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import os

from .database import init_database
from .middleware import EditorIdentityMiddleware
from .routes import (
    data_sources_router,
    queries_router,
    writable_tables_router,
    editors_router,
    editor_router,
    dashboards_router,
)
from .services.errors import EngineError
from .utils.logger import setup_logger

# 加载环境变量
load_dotenv()

# 初始化日志
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 在多进程模式下，每个worker都会执行此代码
    worker_id = os.getpid()
    logger.info(f"Worker {worker_id} 正在启动...")

    try:
        init_database()
        logger.info(f"Worker {worker_id} 配置数据库初始化成功")
    except Exception as e:
        logger.error(f"Worker {worker_id} 配置数据库初始化失败: {e}", exc_info=True)
        raise

    yield

    logger.info(f"Worker {worker_id} 正在关闭...")


app = FastAPI(
    title="Openbase API",
    description="多数据源查询执行与受控写入",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """引擎错误按其状态码返回 {"detail": message}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 失败: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# 注册路由
app.include_router(data_sources_router)
app.include_router(queries_router)
app.include_router(writable_tables_router)
app.include_router(editors_router)
app.include_router(editor_router)
app.include_router(dashboards_router)

app.add_middleware(EditorIdentityMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "Openbase API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def run():
    """命令行入口"""
    import uvicorn
    host = os.getenv("BACKEND_HOST", "0.0.0.0")
    port = int(os.getenv("BACKEND_PORT", 8000))
    workers = int(os.getenv("BACKEND_WORKERS", 1))
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logger.info(f"启动服务器: {host}:{port}, workers={workers}, log_level={log_level}")

    uvicorn.run(
        "openbase.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level=log_level,
        access_log=log_level == "debug"
    )


if __name__ == "__main__":
    run()
