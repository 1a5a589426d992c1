"""
FastAPI 主入口
工厂数字孪生仿真系统 - Factory Digital Twin Simulator
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from factory_twin.api import config, parts, simulation, state

logger = logging.getLogger(__name__)

# 创建FastAPI应用实例
app = FastAPI(
    title="工厂数字孪生仿真系统",
    description="Factory Digital Twin Simulator - parts, stations, belts and sensors",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS中间件配置 - 允许跨域访问
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册API路由
app.include_router(simulation.router, prefix="/api/simulation", tags=["仿真控制"])
app.include_router(parts.router, prefix="/api/parts", tags=["零件指令"])
app.include_router(state.router, prefix="/api/state", tags=["状态查询"])
app.include_router(config.router, prefix="/api/config", tags=["配置管理"])


@app.get("/", response_class=HTMLResponse)
async def root():
    """
    根路径 - 返回服务说明页
    """
    return HTMLResponse(content="""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <title>工厂数字孪生仿真系统</title>
    </head>
    <body>
        <h1>工厂数字孪生仿真系统</h1>
        <h2>Factory Digital Twin Simulator</h2>
        <p>后端服务已启动</p>
        <a href="/docs">API文档 (Swagger)</a>
        <a href="/redoc">API文档 (ReDoc)</a>
    </body>
    </html>
    """)


@app.get("/health")
async def health_check():
    """
    健康检查接口
    """
    return JSONResponse(content={
        "status": "healthy",
        "version": "1.0.0",
        "service": "Factory Digital Twin Simulator",
        "simulations": len(simulation.simulations),
    })


@app.on_event("startup")
async def startup_event():
    """
    应用启动事件
    """
    logger.info("Factory twin service started, API docs at /docs")


@app.on_event("shutdown")
async def shutdown_event():
    """
    应用关闭事件：停止所有运行中的仿真
    """
    for engine in simulation.simulations.values():
        engine.shutdown()
    logger.info("Factory twin service stopped")


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
